"""Tests for the command-line refresh entry point."""

import json

import httpx
import pytest

from core.config import settings
from db.store import RecordStore
from scripts import refresh_sources

from conftest import OFAC_URL


@pytest.fixture(autouse=True)
def wired(monkeypatch, session_factory, fetcher, test_settings):
    for key in ("ofac_csv_url", "un_html_url", "eu_pdf_url"):
        monkeypatch.setattr(settings, key, getattr(test_settings, key))
    monkeypatch.setattr(refresh_sources, "get_session_factory", lambda: session_factory)
    monkeypatch.setattr(refresh_sources, "SourceFetcher", lambda: fetcher)


def test_success_prints_summary(capsys):
    exit_code = refresh_sources.main(["--source", "OFAC", "--source", "EU"])

    assert exit_code == refresh_sources.EXIT_OK
    summary = json.loads(capsys.readouterr().out)
    assert summary["ok"] is True
    assert [s["source"] for s in summary["sources"]] == ["OFAC", "EU"]


def test_partial_failure_exit_code(capsys, publishers):
    publishers.set(OFAC_URL, httpx.Response(404, text="gone"))

    exit_code = refresh_sources.main([])

    assert exit_code == refresh_sources.EXIT_PARTIAL
    summary = json.loads(capsys.readouterr().out)
    assert summary["failed"] == 1


def test_unreachable_store_exit_code(monkeypatch):
    monkeypatch.setattr(RecordStore, "ping", lambda self: False)

    assert refresh_sources.main([]) == refresh_sources.EXIT_UNAVAILABLE


def test_unknown_source_is_rejected():
    with pytest.raises(SystemExit):
        refresh_sources.parse_args(["--source", "NOPE"])
