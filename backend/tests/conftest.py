import logging
import threading

import pytest
from fastapi.testclient import TestClient

from urlshort.config import Settings
from urlshort.database import create_db_engine
from urlshort.main import create_app
from urlshort.services.url_store import UrlStore

BASE_URL = "http://sho.rt"


class ClickWaiter:
    """Collects completion signals from the click tracker."""

    def __init__(self):
        self._done = threading.Semaphore(0)
        self.errors = []

    def __call__(self, url_id, error):
        if error is not None:
            self.errors.append(error)
        self._done.release()

    def wait(self, count: int = 1, timeout: float = 5.0) -> bool:
        return all(self._done.acquire(timeout=timeout) for _ in range(count))


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite:///{tmp_path / 'shortlinks.db'}"


@pytest.fixture
def engine(database_url):
    engine = create_db_engine(database_url)
    yield engine
    engine.dispose()


@pytest.fixture
def store(engine):
    store = UrlStore(engine, logger=logging.getLogger("tests.store"))
    store.init_schema()
    return store


@pytest.fixture
def click_waiter():
    return ClickWaiter()


@pytest.fixture
def settings(database_url):
    return Settings(DATABASE_URL=database_url, BASE_URL=BASE_URL, VERSION="test")


@pytest.fixture
def client(settings, click_waiter):
    app = create_app(settings, on_click_complete=click_waiter)
    with TestClient(app) as client:
        yield client
