import logging
import secrets
from typing import Optional

from sqlalchemy import func, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..core.codec import generate_short_code
from ..core.exceptions import ConflictError, NotFoundError, StorageError
from ..database import Base, create_session_factory
from ..models import Click, Url
from ..schemas.link import LinkStats
from ..utils.validators import validate_url
from .analytics import get_link_analytics


def _pending_code() -> str:
    # Never a valid base62 code, so it cannot clash with an issued one
    return "~" + secrets.token_hex(8)


class UrlStore:
    """
    Creation, lookup and click accounting for shortened URLs.

    Every public method opens its own session, so one store instance can be
    shared by all request handlers and the click-tracking workers.
    """

    def __init__(self, engine: Engine, logger: Optional[logging.Logger] = None):
        self.engine = engine
        self.logger = logger or logging.getLogger(__name__)
        self._session_factory = create_session_factory(engine)

    def init_schema(self) -> None:
        """Create the urls and clicks tables and their indexes if missing."""
        # Import models so metadata is populated before table creation
        from .. import models  # noqa: F401

        try:
            Base.metadata.create_all(bind=self.engine)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to initialize database: {e}") from e

        self.logger.info("Database schema initialized")

    def create_or_get(self, raw_url: str) -> Url:
        """
        Return the record for raw_url, creating it on first submission.

        Args:
            raw_url: URL to shorten, stored exactly as given

        Returns:
            The new or existing Url record

        Raises:
            ValidationError: If the URL is not acceptable
            ConflictError: If a concurrent insert won a uniqueness race
            StorageError: On any other database failure
        """
        validate_url(raw_url)

        with self._session_factory() as db:
            try:
                existing = db.query(Url).filter(
                    Url.original_url == raw_url
                ).order_by(Url.id).first()

                if existing:
                    self.logger.debug(
                        "Returning existing short code",
                        extra={"short_code": existing.short_code}
                    )
                    return existing

                # The id must exist before the code can be derived from it.
                # Both writes share one transaction, so the placeholder is
                # never visible to other sessions.
                url = Url(short_code=_pending_code(), original_url=raw_url)
                db.add(url)
                db.flush()

                url.short_code = generate_short_code(url.id)
                db.commit()
                db.refresh(url)

            except IntegrityError as e:
                db.rollback()
                raise ConflictError(f"Short URL for {raw_url!r} conflicts with an existing record") from e
            except ValueError as e:
                db.rollback()
                raise StorageError(str(e)) from e
            except SQLAlchemyError as e:
                db.rollback()
                raise StorageError(f"Failed to create short URL: {e}") from e

        self.logger.info(
            "URL shortened",
            extra={"short_code": url.short_code, "original_url": raw_url}
        )
        return url

    def get_by_code(self, short_code: str) -> Url:
        """
        Look up a record by its short code (exact, case-sensitive match).

        Raises:
            NotFoundError: If the code is empty or unknown
            StorageError: On database failure
        """
        if not short_code:
            raise NotFoundError("Short code is required")

        with self._session_factory() as db:
            try:
                url = db.query(Url).filter(Url.short_code == short_code).first()
            except SQLAlchemyError as e:
                raise StorageError(f"Failed to look up short code: {e}") from e

        if url is None:
            raise NotFoundError(f"Short code not found: {short_code}")

        return url

    def track_click(
        self,
        url_id: int,
        user_agent: Optional[str] = None,
        referer: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> None:
        """
        Record one click: append a click event and bump the counter.

        Both writes are committed together or not at all.

        Raises:
            NotFoundError: If url_id does not match a record
            StorageError: On database failure
        """
        with self._session_factory() as db:
            try:
                db.add(Click(
                    url_id=url_id,
                    user_agent=user_agent,
                    referer=referer,
                    ip_address=ip_address
                ))
                db.flush()

                result = db.execute(
                    update(Url)
                    .where(Url.id == url_id)
                    .values(clicks=Url.clicks + 1, last_clicked_at=func.now())
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 0:
                    db.rollback()
                    raise NotFoundError(f"No URL with id {url_id}")

                db.commit()

            except IntegrityError as e:
                # Foreign key rejected the click event
                db.rollback()
                raise NotFoundError(f"No URL with id {url_id}") from e
            except SQLAlchemyError as e:
                db.rollback()
                raise StorageError(f"Failed to track click: {e}") from e

    def get_stats(self, short_code: str) -> LinkStats:
        """Click statistics for a short code. Same errors as get_by_code."""
        url = self.get_by_code(short_code)

        return LinkStats(
            short_code=url.short_code,
            original_url=url.original_url,
            created_at=url.created_at,
            total_clicks=url.clicks,
            last_clicked_at=url.last_clicked_at
        )

    def get_analytics(self, short_code: str, period: str = "7d") -> dict:
        """Click breakdown by day and referer for a short code."""
        url = self.get_by_code(short_code)

        with self._session_factory() as db:
            try:
                return get_link_analytics(db, url, period)
            except SQLAlchemyError as e:
                raise StorageError(f"Failed to load analytics: {e}") from e
