#!/usr/bin/env python3
# WORKFLOW: FastAPI application for the sanctions source refresh service.
# Used by: uvicorn (api.main:app), scheduler hitting /jobs/refresh-sources
# Routers:
# 1. health - /healthz, /readyz, /livez under the API prefix
# 2. jobs - /jobs/refresh-sources (token-guarded refresh trigger)

"""
Sanctions Source Refresh API.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging

from core.config import settings
from api.middleware.logging import LoggingMiddleware
from api.routers import health, jobs

logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.project_name,
        version=settings.version,
        description="Scheduled ingestion and change detection for sanctions watchlists",
        debug=settings.debug,
    )

    app.add_middleware(LoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=settings.allowed_methods,
        allow_headers=settings.allowed_headers,
    )

    for router in (health.router, jobs.router):
        app.include_router(router, prefix=settings.api_v1_prefix)
    logger.info(f"{settings.project_name} ({settings.environment}) serving under {settings.api_v1_prefix}")
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
