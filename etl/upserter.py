"""
Entity upserts keyed by ``<source>:<name>``.

``first_seen`` is written only when the key is new and ``last_seen`` never
moves backwards, even if two writers race on the same key.
"""

import logging
from datetime import datetime
from typing import Callable

from db.models import SanctionsEntity, utc_now
from db.store import RecordStore
from etl.parsers import CandidateEntity

logger = logging.getLogger(__name__)


def entity_key(source: str, name: str) -> str:
    return f"{source}:{name}"


class EntityUpserter:

    def __init__(self, store: RecordStore, clock: Callable[[], datetime] = utc_now):
        self.store = store
        self.clock = clock

    def upsert(self, candidate: CandidateEntity, source: str) -> str:
        now = self.clock()
        key = entity_key(source, candidate.name)
        self.store.upsert_by_key(
            SanctionsEntity,
            {
                "entity_key": key,
                "list_name": source,
                "name": candidate.name,
                "program": candidate.program,
                "country": candidate.country,
                "aliases": candidate.aliases,
                "identifiers": dict(candidate.identifiers),
                "first_seen": now,
                "last_seen": now,
            },
            key="entity_key",
            preserve=("first_seen",),
            non_decreasing=("last_seen",),
        )
        return key
