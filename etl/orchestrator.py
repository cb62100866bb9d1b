# WORKFLOW: Refresh orchestrator running each configured source as a tracked ingestion run.
# Used by: /jobs/refresh-sources endpoint, scripts/refresh_sources.py
# Functions:
# 1. tracked_run() - Open a run in `running` and guarantee it ends in `ok` or `error`
# 2. RefreshOrchestrator.run_source() - Fetch -> detect change -> parse -> upsert for one source
# 3. RefreshOrchestrator.run() - Run all (or selected) sources independently, sequential or pooled
#
# Run flow: create run(running) -> fetch -> checksum/detect -> parse -> upsert each -> run(ok, rows, checksum)
# Failure flow: any exception -> rollback pending write -> run(error, partial rows, detail) -> next source
# A failing source never stops its siblings; the invocation returns a partial-success summary.

"""
Per-source ingestion runs with guaranteed finalisation.
"""

import logging
from time import monotonic
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, Iterable, Iterator, List, Optional

from core.config import settings
from db.models import IngestionRun, RunStatus, utc_now
from db.store import RecordStore
from etl.change_detector import ChangeDetector
from etl.errors import (
    DeadlineExceededError,
    FetchError,
    RunStateError,
    StoreUnavailableError,
)
from etl.fetchers import SourceFetcher
from etl.sources import SourceConfig, SourceName, build_sources, select_sources
from etl.upserter import EntityUpserter

logger = logging.getLogger(__name__)


@dataclass
class SourceRunResult:
    source: str
    status: RunStatus
    run_id: Optional[int] = None
    rows: int = 0
    checksum: Optional[str] = None
    changed: bool = False
    http_status: Optional[int] = None
    error: Optional[str] = None


@dataclass
class RefreshSummary:
    started_at: datetime
    finished_at: Optional[datetime] = None
    results: List[SourceRunResult] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.status == RunStatus.OK)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if r.status != RunStatus.OK)

    @property
    def ok(self) -> bool:
        return self.failed == 0


class ActiveRun:
    """Mutable view of an open run; finalised exactly once."""

    def __init__(self, store: RecordStore, record: IngestionRun, clock: Callable[[], datetime]):
        self.store = store
        self.record = record
        self.clock = clock
        self.id = record.id
        self.rows = 0
        self.checksum: Optional[str] = None
        self.http_status: Optional[int] = None

    def finish(self, status: RunStatus, error: Optional[str] = None) -> None:
        if self.record.status != RunStatus.RUNNING.value:
            raise RunStateError(
                f"Run {self.id} is already {self.record.status}; cannot move to {status.value}"
            )
        self.store.update(
            self.record,
            status=status.value,
            ended_at=self.clock(),
            rows=self.rows,
            checksum=self.checksum,
            http_status=self.http_status,
            error=error,
        )


@contextmanager
def tracked_run(store: RecordStore, source: str, clock: Callable[[], datetime] = utc_now) -> Iterator[ActiveRun]:
    """
    Open an ingestion run and finalise it on every exit path.

    Normal exit marks the run ``ok``. Any exception, including cancellation
    (``KeyboardInterrupt`` and other ``BaseException``), marks it ``error``
    with the rows written so far and is then re-raised.
    """
    record = store.insert(IngestionRun(source=source, status=RunStatus.RUNNING.value, started_at=clock()))
    run = ActiveRun(store, record, clock)
    logger.info(f"{source}: run {run.id} started")
    try:
        yield run
        run.finish(RunStatus.OK)
    except BaseException as e:
        _fail_run(store, run, source, e)
        raise
    logger.info(f"{source}: run {run.id} ok with {run.rows} rows")


def _fail_run(store: RecordStore, run: ActiveRun, source: str, error: BaseException) -> None:
    store.rollback()
    if isinstance(error, FetchError) and run.http_status is None:
        run.http_status = error.status_code
    detail = f"{type(error).__name__}: {error}"
    try:
        run.finish(RunStatus.ERROR, error=detail)
    except Exception as e:
        logger.error(f"{source}: run {run.id} could not be marked error: {e}")
    logger.error(f"{source}: run {run.id} failed after {run.rows} rows: {detail}")


class RefreshOrchestrator:
    """Coordinates the configured sources as independent units of work."""

    def __init__(
        self,
        session_factory: Callable,
        fetcher: SourceFetcher,
        sources: Dict[SourceName, SourceConfig] = None,
        clock: Callable[[], datetime] = utc_now,
        max_workers: int = None,
        deadline_seconds: Optional[float] = None,
    ):
        self.session_factory = session_factory
        self.fetcher = fetcher
        self.sources = sources or build_sources()
        self.clock = clock
        self.max_workers = max_workers or settings.refresh_max_workers
        self.deadline_seconds = deadline_seconds if deadline_seconds is not None else settings.refresh_deadline_seconds
        self._deadline: Optional[float] = None

    def run(self, names: Optional[Iterable[SourceName]] = None) -> RefreshSummary:
        """
        Run every selected source and return the partial-success summary.

        Raises:
            StoreUnavailableError: The record store cannot be reached at all
        """
        self._ensure_store()
        selected = select_sources(self.sources, names)
        summary = RefreshSummary(started_at=self.clock())
        self._deadline = monotonic() + self.deadline_seconds if self.deadline_seconds else None

        logger.info(f"Refreshing {len(selected)} sources with {self.max_workers} worker(s)")
        if self.max_workers > 1 and len(selected) > 1:
            with ThreadPoolExecutor(max_workers=min(self.max_workers, len(selected))) as pool:
                summary.results = list(pool.map(self.run_source, selected))
        else:
            summary.results = [self.run_source(source) for source in selected]

        summary.finished_at = self.clock()
        logger.info(f"Refresh finished: {summary.succeeded} ok, {summary.failed} error")
        return summary

    def run_source(self, source: SourceConfig) -> SourceRunResult:
        """Run one source end to end; never raises for ordinary failures."""
        name = source.name.value
        result = SourceRunResult(source=name, status=RunStatus.ERROR)
        store = RecordStore(self.session_factory())
        run = None
        try:
            with tracked_run(store, name, self.clock) as run:
                result.run_id = run.id
                self._ingest(store, source, run, result)
            result.status = RunStatus.OK
        except Exception as e:
            result.error = f"{type(e).__name__}: {e}"
            if run is None:
                logger.error(f"{name}: could not open a run: {e}")
        finally:
            if run is not None:
                result.rows = run.rows
                result.checksum = run.checksum
                result.http_status = run.http_status
            store.close()
        return result

    def _ingest(self, store: RecordStore, source: SourceConfig, run: ActiveRun, result: SourceRunResult) -> None:
        name = source.name.value
        self._check_deadline(name)

        fetched = self.fetcher.fetch(source)
        run.http_status = fetched.status_code
        self._check_deadline(name)

        detection = ChangeDetector(store, clock=self.clock).detect(name, fetched.content, fetched.kind)
        run.checksum = detection.checksum
        result.changed = detection.is_new

        candidates = source.parser.parse(fetched.content)
        logger.info(f"{name}: parsed {len(candidates)} candidate entities")

        upserter = EntityUpserter(store, clock=self.clock)
        for candidate in candidates:
            self._check_deadline(name)
            upserter.upsert(candidate, name)
            run.rows += 1

    def _check_deadline(self, source: str) -> None:
        if self._deadline is not None and monotonic() > self._deadline:
            raise DeadlineExceededError(f"{source}: invocation deadline of {self.deadline_seconds}s exceeded")

    def _ensure_store(self) -> None:
        store = RecordStore(self.session_factory())
        try:
            if not store.ping():
                raise StoreUnavailableError("Record store is unreachable; no run can be opened")
        finally:
            store.close()
