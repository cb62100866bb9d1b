# WORKFLOW: Database models for the sanctions ingestion schema.
# Used by: Record store, change detector, entity upserter, run orchestrator
# Models represent:
# 1. raw_snapshots - Append-only log of fetched publisher payloads
# 2. change_log - Append-only audit trail of source-level content changes
# 3. sanctions_entities - Canonical entity per source+name (entity_key)
# 4. ingestion_runs - One tracked execution per source per invocation
#
# Data flow: Publisher -> Fetch -> Snapshot/Change log -> Parse -> Entities; Run wraps it all

import enum
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, DateTime, Text, JSON, Index
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utc_now() -> datetime:
    """Naive UTC timestamp, the representation every table stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class ChangeType(str, enum.Enum):
    INSERT = "insert"
    UPDATE = "update"


class RunStatus(str, enum.Enum):
    RUNNING = "running"
    OK = "ok"
    ERROR = "error"


class RawSnapshot(Base):
    __tablename__ = "raw_snapshots"

    id = Column(Integer, primary_key=True, autoincrement=True)
    source = Column(String(20), nullable=False)
    payload = Column(JSON, nullable=False)  # {"kind", "size", "truncated", "content"?}
    checksum = Column(String(64), nullable=False)
    fetched_at = Column(DateTime, nullable=False, default=utc_now)

    __table_args__ = (
        Index('idx_snapshot_source_fetched', 'source', 'fetched_at'),
    )


class ChangeLogEntry(Base):
    __tablename__ = "change_log"

    id = Column(Integer, primary_key=True, autoincrement=True)
    source = Column(String(20), nullable=False)
    entity_key = Column(String(300), nullable=False)
    change_type = Column(String(10), nullable=False)
    summary = Column(Text, nullable=True)
    severity = Column(String(20), nullable=False)
    old_hash = Column(String(64), nullable=True)
    new_hash = Column(String(64), nullable=False)
    occurred_at = Column(DateTime, nullable=False, default=utc_now)

    __table_args__ = (
        Index('idx_change_source_occurred', 'source', 'occurred_at'),
    )


class SanctionsEntity(Base):
    __tablename__ = "sanctions_entities"

    entity_key = Column(String(300), primary_key=True)  # "<source>:<name>"
    list_name = Column(String(20), nullable=False)
    name = Column(String(255), nullable=False)
    program = Column(Text, nullable=True)
    country = Column(String(100), nullable=True)
    aliases = Column(JSON, nullable=True)
    identifiers = Column(JSON, nullable=False, default=dict)
    first_seen = Column(DateTime, nullable=False)
    last_seen = Column(DateTime, nullable=False)

    __table_args__ = (
        Index('idx_entity_list_name', 'list_name'),
        Index('idx_entity_country', 'country'),
    )


class IngestionRun(Base):
    __tablename__ = "ingestion_runs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    source = Column(String(20), nullable=False)
    status = Column(String(10), nullable=False, default=RunStatus.RUNNING.value)
    started_at = Column(DateTime, nullable=False, default=utc_now)
    ended_at = Column(DateTime, nullable=True)
    rows = Column(Integer, nullable=False, default=0)
    checksum = Column(String(64), nullable=True)
    http_status = Column(Integer, nullable=True)
    error = Column(Text, nullable=True)

    __table_args__ = (
        Index('idx_run_source_started', 'source', 'started_at'),
        Index('idx_run_status', 'status'),
    )
