"""Bulk import endpoints: templates, upload + preview, commit, cancel."""

from __future__ import annotations

import logging
from typing import Annotated, Any, Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, Response, UploadFile, status
from pydantic import BaseModel

from bulkimport.api.deps import get_catalog, get_registry, get_settings, get_submitter
from bulkimport.api.registry import SessionRegistry
from bulkimport.commit.template import build_template, template_filename
from bulkimport.core.config import AppSettings
from bulkimport.core.exceptions import (
    FileTooLargeError,
    HeaderError,
    InvalidTransitionError,
    ParseError,
    SubmitError,
    UnknownImportKindError,
    UnsupportedFormatError,
)
from bulkimport.core.protocols import ISchemaCatalog, ISubmitter
from bulkimport.ingest.reader import XLSX_MIME, check_upload
from bulkimport.models.schema import ImportSchema
from bulkimport.models.session import ImportPreview, SessionState
from bulkimport.session import ImportSession

logger = logging.getLogger(__name__)

router = APIRouter(tags=["imports"])


class SessionCreated(BaseModel):
    session_id: str
    preview: ImportPreview


# ─── Helpers ───

def _schema(catalog: ISchemaCatalog, kind: str, year: Optional[int], month: Optional[int]) -> ImportSchema:
    params: dict[str, Any] = {}
    if kind == "attendance":
        params = {"year": year, "month": month}
    try:
        return catalog.get(kind, **params)
    except UnknownImportKindError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc


def _session(registry: SessionRegistry, session_id: str) -> ImportSession:
    session = registry.get(session_id)
    if session is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Import session not found")
    return session


# ─── GET /imports/kinds ───

@router.get("/kinds")
async def list_kinds(catalog: Annotated[ISchemaCatalog, Depends(get_catalog)]) -> dict[str, list[str]]:
    return {"kinds": catalog.kinds()}


# ─── GET /imports/{kind}/template ───

@router.get("/{kind}/template", summary="Download a pre-filled XLSX template")
async def download_template(
    kind: str,
    catalog: Annotated[ISchemaCatalog, Depends(get_catalog)],
    year: Optional[int] = Query(default=None),
    month: Optional[int] = Query(default=None, ge=1, le=12),
) -> Response:
    schema = _schema(catalog, kind, year, month)
    return Response(
        content=build_template(schema),
        media_type=XLSX_MIME,
        headers={"Content-Disposition": f'attachment; filename="{template_filename(schema)}"'},
    )


# ─── POST /imports/{kind}/sessions ───

@router.post(
    "/{kind}/sessions",
    response_model=SessionCreated,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a CSV/XLSX file and get a validated preview",
)
async def create_session(
    kind: str,
    settings: Annotated[AppSettings, Depends(get_settings)],
    catalog: Annotated[ISchemaCatalog, Depends(get_catalog)],
    registry: Annotated[SessionRegistry, Depends(get_registry)],
    submitter: Annotated[ISubmitter, Depends(get_submitter)],
    file: UploadFile = File(...),
    year: Optional[int] = Query(default=None),
    month: Optional[int] = Query(default=None, ge=1, le=12),
) -> SessionCreated:
    schema = _schema(catalog, kind, year, month)
    limit = settings.imports.max_file_size_bytes
    try:
        file_format = check_upload(file.filename or "", file.size or 0, file.content_type, limit)
    except UnsupportedFormatError as exc:
        raise HTTPException(status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE, detail=str(exc)) from exc
    except FileTooLargeError as exc:
        raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail=str(exc)) from exc

    session = ImportSession(schema, submitter, config=settings.imports)
    try:
        await session.load(await file.read(), file_format=file_format)
    except HeaderError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": str(exc), "missing": exc.missing},
        ) from exc
    except FileTooLargeError as exc:
        raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail=str(exc)) from exc
    except ParseError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc

    session_id = registry.add(session)
    logger.info("Opened %s import session %s", kind, session_id)
    return SessionCreated(session_id=session_id, preview=session.preview())


# ─── GET /imports/sessions/{session_id} ───

@router.get("/sessions/{session_id}", response_model=ImportPreview)
async def get_session(
    session_id: str,
    registry: Annotated[SessionRegistry, Depends(get_registry)],
    rows: Optional[int] = Query(default=None, ge=0),
) -> ImportPreview:
    return _session(registry, session_id).preview(rows)


# ─── POST /imports/sessions/{session_id}/commit ───

@router.post("/sessions/{session_id}/commit", response_model=ImportPreview)
async def commit_session(
    session_id: str,
    registry: Annotated[SessionRegistry, Depends(get_registry)],
) -> ImportPreview:
    session = _session(registry, session_id)
    try:
        await session.commit()
    except InvalidTransitionError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except SubmitError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"message": str(exc), "state": session.state.value},
        ) from exc
    return session.snapshot()


# ─── DELETE /imports/sessions/{session_id} ───

@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def cancel_session(
    session_id: str,
    registry: Annotated[SessionRegistry, Depends(get_registry)],
) -> Response:
    session = _session(registry, session_id)
    if session.state != SessionState.COMMITTED:
        try:
            session.cancel()
        except InvalidTransitionError as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    registry.discard(session_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
