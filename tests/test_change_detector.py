"""Tests for snapshot change detection and its idempotency guarantee."""

from datetime import datetime

import pytest
from sqlalchemy import event, func, select
from sqlalchemy.exc import OperationalError

from db.models import ChangeLogEntry, RawSnapshot
from etl.change_detector import ChangeDetector
from etl.checksum import digest
from etl.errors import StorageError
from etl.sources import ContentKind


def _count(store, model) -> int:
    return store.session.execute(select(func.count()).select_from(model)).scalar_one()


def test_first_payload_is_an_insert(store, clock):
    detector = ChangeDetector(store, clock=clock)

    detection = detector.detect("OFAC", "name\nAcme Corp\n")

    assert detection.is_new
    assert detection.previous_checksum is None
    assert detection.checksum == digest("name\nAcme Corp\n")

    entry = store.session.execute(select(ChangeLogEntry)).scalar_one()
    assert entry.change_type == "insert"
    assert entry.entity_key == "OFAC"
    assert entry.old_hash is None
    assert entry.new_hash == detection.checksum
    assert entry.summary == "New source added"
    assert entry.severity == "medium"


def test_identical_payload_writes_nothing(store, clock):
    detector = ChangeDetector(store, clock=clock)
    detector.detect("OFAC", "same bytes")

    detection = detector.detect("OFAC", "same bytes")

    assert not detection.is_new
    assert detection.previous_checksum == detection.checksum
    assert _count(store, RawSnapshot) == 1
    assert _count(store, ChangeLogEntry) == 1


def test_changed_payload_is_an_update(store, clock):
    detector = ChangeDetector(store, clock=clock)
    first = detector.detect("UN", "<tr><td>Old Name</td></tr>", ContentKind.HTML)

    second = detector.detect("UN", "<tr><td>New Name</td></tr>", ContentKind.HTML)

    assert second.is_new
    assert second.previous_checksum == first.checksum
    latest = store.most_recent(ChangeLogEntry, "occurred_at", source="UN")
    assert latest.change_type == "update"
    assert latest.old_hash == first.checksum
    assert latest.summary == "Source updated"
    assert _count(store, RawSnapshot) == 2


def test_reverting_to_earlier_content_is_a_change(store, clock):
    detector = ChangeDetector(store, clock=clock)
    detector.detect("OFAC", "v1")
    detector.detect("OFAC", "v2")

    assert detector.detect("OFAC", "v1").is_new


def test_sources_are_compared_independently(store, clock):
    detector = ChangeDetector(store, clock=clock)
    detector.detect("OFAC", "shared payload")

    detection = detector.detect("UN", "shared payload", ContentKind.HTML)

    assert detection.is_new
    assert detection.previous_checksum is None


def test_text_snapshot_is_truncated(store, clock):
    detector = ChangeDetector(store, clock=clock, snapshot_max_chars=10)

    detector.detect("OFAC", "0123456789abcdef")

    snapshot = store.session.execute(select(RawSnapshot)).scalar_one()
    assert snapshot.payload == {"kind": "text", "size": 16, "truncated": True, "content": "0123456789"}
    assert snapshot.checksum == digest("0123456789abcdef")


def test_binary_snapshot_keeps_no_content(store, clock):
    detector = ChangeDetector(store, clock=clock)

    detector.detect("EU", b"%PDF-1.4", ContentKind.BINARY)

    snapshot = store.session.execute(select(RawSnapshot)).scalar_one()
    assert snapshot.payload == {"kind": "binary", "size": 8, "truncated": False}


def test_latest_snapshot_wins_on_equal_timestamps(store):
    detector = ChangeDetector(store, clock=lambda: datetime(2024, 1, 1))
    detector.detect("OFAC", "v1")
    detector.detect("OFAC", "v2")

    assert not detector.detect("OFAC", "v2").is_new


def test_failed_change_row_also_discards_snapshot(store, clock):
    def refuse_change_row(mapper, connection, target):
        raise OperationalError("INSERT INTO change_log", {}, Exception("disk I/O error"))

    detector = ChangeDetector(store, clock=clock)
    event.listen(ChangeLogEntry, "before_insert", refuse_change_row)
    try:
        with pytest.raises(StorageError):
            detector.detect("OFAC", "name\nAcme Corp\n")
    finally:
        event.remove(ChangeLogEntry, "before_insert", refuse_change_row)

    assert _count(store, RawSnapshot) == 0
    assert _count(store, ChangeLogEntry) == 0

    retry = detector.detect("OFAC", "name\nAcme Corp\n")

    assert retry.is_new
    assert retry.change_type.value == "insert"
    assert _count(store, RawSnapshot) == 1
    assert _count(store, ChangeLogEntry) == 1
