# WORKFLOW: Pydantic request schemas for API input validation.
# Used by: FastAPI endpoints for request validation and documentation
# Schemas include:
# 1. RefreshRequest - Optional body for /jobs/refresh-sources selecting a subset of sources
#
# Validation flow: HTTP request -> Pydantic validation -> Endpoint processing
# Unknown source names are rejected with 422 before any run is opened.

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List

from etl.sources import SourceName


class RefreshRequest(BaseModel):
    """Request schema for the refresh trigger."""
    sources: Optional[List[SourceName]] = Field(
        None, description="Sources to refresh; all configured sources when omitted"
    )

    @field_validator('sources')
    @classmethod
    def validate_sources(cls, v):
        if v is not None and not v:
            raise ValueError('sources must name at least one source when provided')
        return v
