"""Tests for SourceFetcher failure classes and content kinds."""

import httpx
import pytest

from etl.errors import FetchReadError, FetchStatusError, FetchTransportError
from etl.fetchers import SourceFetcher
from etl.sources import ContentKind, SourceName

from conftest import EU_URL, OFAC_URL


class _FailingStream(httpx.SyncByteStream):
    def __iter__(self):
        yield b"name,program"
        raise httpx.ReadError("connection reset mid-body")


def test_text_source_returns_decoded_text(fetcher, sources):
    result = fetcher.fetch(sources[SourceName.OFAC])

    assert result.kind == ContentKind.TEXT
    assert result.content == "name,program,country\nAcme Corp,SDN,RU\n"
    assert result.status_code == 200
    assert result.source == "OFAC"


def test_binary_source_returns_bytes(fetcher, sources):
    result = fetcher.fetch(sources[SourceName.EU])

    assert result.kind == ContentKind.BINARY
    assert result.content == b"%PDF-1.4 regime 26"


def test_request_headers(fetcher, sources, publishers):
    fetcher.fetch(sources[SourceName.EU])

    request = publishers.requests[-1]
    assert request.method == "GET"
    assert request.headers["User-Agent"] == "test-agent/1.0"
    assert request.headers["Accept"].startswith("application/pdf")


def test_non_success_status(fetcher, sources, publishers):
    publishers.set(OFAC_URL, httpx.Response(503, text="Service Unavailable " + "x" * 200))

    with pytest.raises(FetchStatusError) as exc_info:
        fetcher.fetch(sources[SourceName.OFAC])

    assert exc_info.value.status_code == 503
    assert exc_info.value.body.startswith("Service Unavailable")
    assert len(exc_info.value.body) == 50


def test_transport_failure(fetcher, sources, publishers, raising):
    publishers.set(EU_URL, raising(httpx.ConnectError("name resolution failed")))

    with pytest.raises(FetchTransportError) as exc_info:
        fetcher.fetch(sources[SourceName.EU])

    assert exc_info.value.status_code is None


def test_timeout_is_a_transport_failure(fetcher, sources, publishers, raising):
    publishers.set(EU_URL, raising(httpx.ConnectTimeout("timed out")))

    with pytest.raises(FetchTransportError):
        fetcher.fetch(sources[SourceName.EU])


def test_body_read_failure(fetcher, sources, publishers):
    publishers.set(OFAC_URL, lambda request: httpx.Response(200, stream=_FailingStream()))

    with pytest.raises(FetchReadError) as exc_info:
        fetcher.fetch(sources[SourceName.OFAC])

    assert exc_info.value.status_code == 200


def test_owned_client_uses_configured_timeout():
    fetcher = SourceFetcher(timeout=5.0)
    try:
        assert fetcher.client.timeout.read == 5.0
    finally:
        fetcher.close()
