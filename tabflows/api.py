"""
FastAPI surface for flow storage.

Exposes the assembled document and the save cycle over HTTP so an editor or
deployment tool can talk to storage without embedding it.

Usage:
    from tabflows.api import create_app

    app = create_app(storage)
    uvicorn.run(app, port=1881)

API Structure:
    GET  /api/health - Health check
    GET  /api/flows  - Assembled document
    POST /api/flows  - Save a document as per-tab files
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .errors import GIT_MERGE_CONFLICT, FlowStorageError
from .storage import LocalFilesystemStorage

logger = logging.getLogger(__name__)


# =============================================================================
# Pydantic Models
# =============================================================================


class HealthResponse(BaseModel):
    status: str = "ok"
    flow_file: Optional[str] = None
    tab_files: int = 0
    mirror_connected: bool = False


class SaveFlowsResponse(BaseModel):
    """Response for the save endpoint."""

    written: int = Field(..., description="Per-tab files written")
    failed: Dict[str, str] = Field(default_factory=dict, description="Path -> error")
    deleted: int = Field(0, description="Stale per-tab files removed")
    skipped: bool = Field(False, description="True when storage is read-only")


class ErrorResponse(BaseModel):
    code: str
    message: str


# =============================================================================
# Routes
# =============================================================================


router = APIRouter(prefix="/api", tags=["flows"])


def _storage(request: Request) -> LocalFilesystemStorage:
    return request.app.state.storage


@router.get("/health", response_model=HealthResponse)
async def health(request: Request):
    storage = _storage(request)
    mirror = storage.mirror
    return HealthResponse(
        flow_file=storage.get_flow_filename(),
        tab_files=len(storage.context.files),
        mirror_connected=bool(mirror and mirror.connected),
    )


@router.get("/flows", responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}})
async def get_flows(request: Request) -> List[Dict[str, Any]]:
    """Return the document assembled from every flow file."""
    return await _storage(request).get_flows()


@router.post(
    "/flows",
    response_model=SaveFlowsResponse,
    responses={409: {"model": ErrorResponse}},
)
async def save_flows(flows: List[Dict[str, Any]], request: Request):
    """Save the posted document as one file per tab."""
    result = await _storage(request).save_flows(flows)
    return SaveFlowsResponse(
        written=len(result.written),
        failed={str(path): error for path, error in result.failed.items()},
        deleted=len(result.deleted),
        skipped=result.skipped,
    )


async def _storage_error_handler(request: Request, exc: FlowStorageError) -> JSONResponse:
    status = 409 if exc.code == GIT_MERGE_CONFLICT else 400
    logger.warning("Request %s %s refused: %s", request.method, request.url.path, exc.code)
    return JSONResponse(status_code=status, content={"detail": exc.to_dict()})


def create_app(storage: LocalFilesystemStorage) -> FastAPI:
    """Build an app bound to ``storage``; storage starts and stops with the app."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await storage.init()
        try:
            yield
        finally:
            await storage.close()

    app = FastAPI(title="tabflows", lifespan=lifespan)
    app.state.storage = storage
    app.include_router(router)
    app.add_exception_handler(FlowStorageError, _storage_error_handler)
    return app
