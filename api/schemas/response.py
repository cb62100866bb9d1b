# WORKFLOW: Pydantic response schemas for the refresh trigger.
# Used by: /jobs/refresh-sources endpoint, refresh CLI output
# Schemas include:
# 1. SourceRunStatus - Outcome of one source's ingestion run
# 2. RefreshResponse - Invocation summary (overall flag, timestamp, per-source status)
#
# Response flow: RefreshSummary -> RefreshResponse.from_summary() -> JSON

from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from enum import Enum

from etl.orchestrator import RefreshSummary


class RunOutcome(str, Enum):
    OK = "ok"
    ERROR = "error"


class SourceRunStatus(BaseModel):
    source: str
    status: RunOutcome
    run_id: Optional[int] = None
    rows: int = 0
    checksum: Optional[str] = None
    changed: bool = False
    http_status: Optional[int] = None
    error: Optional[str] = None


class RefreshResponse(BaseModel):
    ok: bool = Field(..., description="True only when every source finished ok")
    updated_at: datetime
    succeeded: int
    failed: int
    sources: List[SourceRunStatus] = Field(default_factory=list)

    @classmethod
    def from_summary(cls, summary: RefreshSummary) -> "RefreshResponse":
        return cls(
            ok=summary.ok,
            updated_at=summary.finished_at or summary.started_at,
            succeeded=summary.succeeded,
            failed=summary.failed,
            sources=[
                SourceRunStatus(
                    source=r.source,
                    status=RunOutcome(r.status.value),
                    run_id=r.run_id,
                    rows=r.rows,
                    checksum=r.checksum,
                    changed=r.changed,
                    http_status=r.http_status,
                    error=r.error,
                )
                for r in summary.results
            ],
        )
