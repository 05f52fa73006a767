"""FastAPI dependencies resolving app-level collaborators."""

from __future__ import annotations

from fastapi import Request

from bulkimport.api.registry import SessionRegistry
from bulkimport.core.config import AppSettings
from bulkimport.core.protocols import ISchemaCatalog, ISubmitter


def get_settings(request: Request) -> AppSettings:
    return request.app.state.settings


def get_catalog(request: Request) -> ISchemaCatalog:
    return request.app.state.catalog


def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.sessions


def get_submitter(request: Request) -> ISubmitter:
    return request.app.state.submitter
