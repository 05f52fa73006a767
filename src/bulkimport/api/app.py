"""FastAPI application with lifespan and router mounting."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from bulkimport.api.registry import SessionRegistry
from bulkimport.api.routes import health, imports
from bulkimport.commit.http import HttpSubmitter
from bulkimport.core.config import AppSettings
from bulkimport.core.logging import setup_logging
from bulkimport.core.protocols import ISchemaCatalog, ISubmitter
from bulkimport.schemas.catalog import SchemaCatalog


def create_app(
    settings: AppSettings | None = None,
    submitter: ISubmitter | None = None,
    catalog: ISchemaCatalog | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or AppSettings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        setup_logging(settings)
        yield

    app = FastAPI(
        title="HR Bulk Import Service",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.catalog = catalog or SchemaCatalog()
    app.state.submitter = submitter or HttpSubmitter(settings.submit)
    app.state.sessions = SessionRegistry()
    app.include_router(health.router)
    app.include_router(imports.router, prefix="/imports")
    return app
