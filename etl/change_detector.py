# WORKFLOW: Snapshot and change detection over the append-only snapshot log.
# Used by: Run orchestrator (once per fetched payload)
# Functions:
# 1. ChangeDetector.detect() - Compare payload checksum with the latest snapshot for the source
# 2. _snapshot_payload() - Bounded JSON payload stored with a new snapshot
#
# Detection flow: Payload -> digest -> latest RawSnapshot(source) -> differs? -> RawSnapshot + ChangeLogEntry (one commit)
# Unchanged content writes nothing: re-ingesting the same bytes adds no snapshot and no change row.

"""
Change detection for publisher payloads.

The previous checksum is always read back from ``raw_snapshots`` rather than
held in memory, so the detector carries no state between calls.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Union
from datetime import datetime

from core.config import settings
from db.models import ChangeLogEntry, ChangeType, RawSnapshot, utc_now
from db.store import RecordStore
from etl.checksum import digest
from etl.sources import ContentKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Detection:
    is_new: bool
    checksum: str
    previous_checksum: Optional[str]

    @property
    def change_type(self) -> Optional[ChangeType]:
        if not self.is_new:
            return None
        return ChangeType.UPDATE if self.previous_checksum else ChangeType.INSERT


class ChangeDetector:
    """Decides whether a payload is new and records it when it is."""

    def __init__(
        self,
        store: RecordStore,
        clock: Callable[[], datetime] = utc_now,
        snapshot_max_chars: int = None,
        severity: str = None,
    ):
        self.store = store
        self.clock = clock
        self.snapshot_max_chars = snapshot_max_chars or settings.snapshot_max_chars
        self.severity = severity or settings.change_severity

    def detect(self, source: str, content: Union[str, bytes], kind: ContentKind = ContentKind.TEXT) -> Detection:
        checksum = digest(content)
        previous = self.store.most_recent(RawSnapshot, "fetched_at", source=source)
        previous_checksum = previous.checksum if previous else None
        detection = Detection(
            is_new=previous_checksum != checksum,
            checksum=checksum,
            previous_checksum=previous_checksum,
        )
        if not detection.is_new:
            logger.info(f"{source}: content unchanged ({checksum[:12]})")
            return detection

        # Snapshot and its change row are committed together.
        now = self.clock()
        snapshot = RawSnapshot(
            source=source,
            payload=self._snapshot_payload(content, kind),
            checksum=checksum,
            fetched_at=now,
        )
        change = ChangeLogEntry(
            source=source,
            entity_key=source,
            change_type=detection.change_type.value,
            summary="Source updated" if previous_checksum else "New source added",
            severity=self.severity,
            old_hash=previous_checksum,
            new_hash=checksum,
            occurred_at=now,
        )
        self.store.insert_all(snapshot, change)
        logger.info(
            f"{source}: {detection.change_type.value} detected "
            f"({(previous_checksum or 'none')[:12]} -> {checksum[:12]})"
        )
        return detection

    def _snapshot_payload(self, content: Union[str, bytes], kind: ContentKind) -> Dict[str, Any]:
        payload = {"kind": kind.value, "size": len(content), "truncated": False}
        if kind == ContentKind.BINARY or isinstance(content, bytes):
            return payload
        payload["content"] = content[:self.snapshot_max_chars]
        payload["truncated"] = len(content) > self.snapshot_max_chars
        return payload
