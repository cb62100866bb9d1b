"""Shared fixtures: in-memory SQLite record store, fake publishers, a controllable clock."""

from datetime import datetime, timedelta
from typing import Callable, Dict

import httpx
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from db.models import Base
from db.store import RecordStore
from etl.fetchers import SourceFetcher
from etl.sources import build_sources
from core.config import Settings

OFAC_URL = "https://publisher.test/ofac/sdn.csv"
UN_URL = "https://publisher.test/un/consolidated.html"
EU_URL = "https://publisher.test/eu/regime.pdf"


class FakeClock:
    """Clock that moves forward one second per reading."""

    def __init__(self, start: datetime = datetime(2024, 1, 1, 12, 0, 0)):
        self.now = start

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + timedelta(seconds=1)
        return current


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def store(session_factory):
    store = RecordStore(session_factory())
    yield store
    store.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def test_settings():
    return Settings(
        ofac_csv_url=OFAC_URL,
        un_html_url=UN_URL,
        eu_pdf_url=EU_URL,
        refresh_token="test-token",
    )


@pytest.fixture
def sources(test_settings):
    return build_sources(test_settings)


class FakePublishers:
    """
    Routes requests by URL to per-publisher handlers.

    Each handler is either an ``httpx.Response`` or a callable taking the
    request; it can be swapped between calls to simulate content changes.
    """

    def __init__(self):
        self.handlers: Dict[str, object] = {}
        self.requests = []

    def set(self, url: str, handler) -> None:
        self.handlers[url] = handler

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.handlers.get(str(request.url))
        if handler is None:
            return httpx.Response(404, text="not found")
        if isinstance(handler, httpx.Response):
            return httpx.Response(handler.status_code, headers=handler.headers, content=handler.content)
        return handler(request)


@pytest.fixture
def publishers():
    publishers = FakePublishers()
    publishers.set(OFAC_URL, httpx.Response(200, text="name,program,country\nAcme Corp,SDN,RU\n"))
    publishers.set(UN_URL, httpx.Response(200, text=(
        "<table><tr><td>Ivan Petrov</td><td>RU</td></tr>"
        "<tr class='x'><td>Global Trading LLC</td></tr></table>"
    )))
    publishers.set(EU_URL, httpx.Response(200, content=b"%PDF-1.4 regime 26"))
    return publishers


@pytest.fixture
def fetcher(publishers) -> SourceFetcher:
    client = httpx.Client(transport=httpx.MockTransport(publishers))
    fetcher = SourceFetcher(client=client, user_agent="test-agent/1.0", error_body_max_chars=50)
    yield fetcher
    client.close()


@pytest.fixture
def raising() -> Callable[[Exception], Callable[[httpx.Request], httpx.Response]]:
    """Factory for handlers that fail the transport with the given exception."""

    def make(exc: Exception) -> Callable[[httpx.Request], httpx.Response]:
        def handler(request: httpx.Request) -> httpx.Response:
            raise exc

        return handler

    return make
