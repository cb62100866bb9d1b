# WORKFLOW: Job endpoints triggered by the external scheduler.
# Used by: Cron / scheduler calling the authenticated refresh trigger
# Endpoints:
# 1. POST /jobs/refresh-sources - Refresh all (or body-selected) sources
# 2. GET  /jobs/refresh-sources - Same, sources selected with ?sources=
#
# Request flow: Token check -> Orchestrator.run() -> per-source runs -> RefreshResponse
# Status codes: 200 with embedded per-source summary (including partial failure),
# 401 bad token, 422 malformed request, 503 record store unreachable.

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from typing import List, Optional
import logging

from api.middleware.auth import require_refresh_token
from api.schemas.request import RefreshRequest
from api.schemas.response import RefreshResponse
from db.session import get_session_factory
from etl.errors import StoreUnavailableError
from etl.fetchers import SourceFetcher
from etl.orchestrator import RefreshOrchestrator
from etl.sources import SourceName

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/jobs", tags=["jobs"], dependencies=[Depends(require_refresh_token)])


def get_fetcher():
    """Dependency yielding a fetcher whose HTTP client lives for one request."""
    fetcher = SourceFetcher()
    try:
        yield fetcher
    finally:
        fetcher.close()


def _refresh(names: Optional[List[SourceName]], session_factory, fetcher: SourceFetcher) -> RefreshResponse:
    try:
        orchestrator = RefreshOrchestrator(session_factory, fetcher)
        summary = orchestrator.run(names)
    except StoreUnavailableError as e:
        logger.error(f"Refresh could not start: {e}")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    except Exception as e:
        logger.exception(f"Refresh failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Refresh failed: {str(e)}",
        )

    return RefreshResponse.from_summary(summary)


@router.post("/refresh-sources", response_model=RefreshResponse)
def refresh_sources(
    request: Optional[RefreshRequest] = Body(None),
    session_factory=Depends(get_session_factory),
    fetcher: SourceFetcher = Depends(get_fetcher),
):
    """
    Refresh the configured sanctions sources.

    Each source runs as its own tracked ingestion run; a failing source is
    reported in the summary and does not fail the request.
    """
    names = request.sources if request else None
    logger.info(f"Refresh requested for {[n.value for n in names] if names else 'all sources'}")
    return _refresh(names, session_factory, fetcher)


@router.get("/refresh-sources", response_model=RefreshResponse)
def refresh_sources_get(
    sources: Optional[List[SourceName]] = Query(None),
    session_factory=Depends(get_session_factory),
    fetcher: SourceFetcher = Depends(get_fetcher),
):
    """Cron-friendly variant of the refresh trigger."""
    return _refresh(sources, session_factory, fetcher)
