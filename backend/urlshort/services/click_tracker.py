import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Optional

from .url_store import UrlStore

CompletionCallback = Callable[[int, Optional[BaseException]], None]


class ClickTracker:
    """
    Fire-and-forget click accounting.

    Redirects hand clicks to dispatch() and return immediately; a small worker
    pool writes them through the store. Failures are logged and never reach
    the redirect. Click counts therefore lag redirect traffic slightly.

    At most max_pending clicks may be queued or running; further clicks are
    dropped with a warning so a stalled database cannot exhaust memory.

    on_complete, if given, is called as on_complete(url_id, error) after every
    job, with error set to None on success.
    """

    def __init__(
        self,
        store: UrlStore,
        logger: Optional[logging.Logger] = None,
        max_workers: int = 4,
        max_pending: int = 1000,
        on_complete: Optional[CompletionCallback] = None,
    ):
        self.store = store
        self.logger = logger or logging.getLogger(__name__)
        self.on_complete = on_complete
        self._slots = threading.BoundedSemaphore(max_pending)
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="click-tracker"
        )

    def dispatch(
        self,
        url_id: int,
        user_agent: Optional[str] = None,
        referer: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> Optional[Future]:
        """
        Queue a click for recording and return without waiting for it.

        Returns None when the queue is full and the click was dropped.
        """
        if not self._slots.acquire(blocking=False):
            self.logger.warning("Click queue full, dropping click", extra={"url_id": url_id})
            return None

        try:
            return self._executor.submit(self._record, url_id, user_agent, referer, ip_address)
        except RuntimeError:
            # Executor already shut down
            self._slots.release()
            raise

    def _record(self, url_id, user_agent, referer, ip_address) -> None:
        try:
            self._run(url_id, user_agent, referer, ip_address)
        finally:
            self._slots.release()

    def _run(self, url_id, user_agent, referer, ip_address) -> None:
        error = None
        try:
            self.store.track_click(url_id, user_agent, referer, ip_address)
        except Exception as e:
            error = e
            self.logger.error(
                "Failed to track click",
                extra={"url_id": url_id, "error": str(e)}
            )
        else:
            self.logger.debug("Click tracked", extra={"url_id": url_id})

        if self.on_complete is not None:
            try:
                self.on_complete(url_id, error)
            except Exception:
                self.logger.exception("Click completion callback failed")

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting clicks; with wait=True, finish the queued ones first."""
        self._executor.shutdown(wait=wait)
