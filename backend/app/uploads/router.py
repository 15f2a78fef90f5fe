"""FastAPI router for the upload relay endpoints.

All endpoints live under /api/upload (registered in main.py). Each request
is staged inside ``LocalStaging.stage()``, which sweeps the staged files on
every exit path, then handed to the UploadOrchestrator. Failures are raised
as UploadError and rendered by the handlers in main.py.
"""
import logging
from typing import List

from fastapi import APIRouter, Depends, Request

from app.config import AppSettings

from .orchestrator import UploadOrchestrator
from .schemas import MultifieldUploadResponse, MultipleUploadResponse, SingleUploadResponse
from .staging import FieldLimit, LocalStaging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/upload", tags=["upload"])


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------
# create_app() stores one instance of each on app.state.


def get_settings(request: Request) -> AppSettings:
    return request.app.state.config


def get_staging(request: Request) -> LocalStaging:
    return request.app.state.staging


def get_orchestrator(request: Request) -> UploadOrchestrator:
    return request.app.state.orchestrator


def multifield_limits(config: AppSettings) -> List[FieldLimit]:
    uploads = config.uploads
    return [FieldLimit(name, uploads.multifield_max_per_field) for name in uploads.multifield_fields]


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@router.post("/single", response_model=SingleUploadResponse)
async def upload_single(
    request: Request,
    staging: LocalStaging = Depends(get_staging),
    orchestrator: UploadOrchestrator = Depends(get_orchestrator),
) -> SingleUploadResponse:
    """Upload one file sent under the ``file`` field.

    Raises:
        NoFileProvided (400): If the request carries no file.
        LimitExceeded (400): Extra files, other fields, or a file over the size limit.
        RemoteUploadFailed (500): If the store rejects the upload.
    """
    async with staging.stage(request, [FieldLimit("file", 1)]) as staged:
        files = staged.get("file", [])
        outcome = await orchestrator.upload_single(files[0] if files else None)

    return SingleUploadResponse(data=outcome.unwrap())


@router.post("/multiple", response_model=MultipleUploadResponse)
async def upload_multiple(
    request: Request,
    config: AppSettings = Depends(get_settings),
    staging: LocalStaging = Depends(get_staging),
    orchestrator: UploadOrchestrator = Depends(get_orchestrator),
) -> MultipleUploadResponse:
    """Upload up to ``uploads.max_files`` files sent under the ``files`` field."""
    limits = [FieldLimit("files", config.uploads.max_files)]
    async with staging.stage(request, limits) as staged:
        outcome = await orchestrator.upload_multiple(staged.get("files", []))

    results = outcome.unwrap()
    return MultipleUploadResponse(
        message=f"{len(results)} files uploaded successfully",
        data=results,
    )


@router.post("/multifield", response_model=MultifieldUploadResponse)
async def upload_multifield(
    request: Request,
    config: AppSettings = Depends(get_settings),
    staging: LocalStaging = Depends(get_staging),
    orchestrator: UploadOrchestrator = Depends(get_orchestrator),
) -> MultifieldUploadResponse:
    """Upload files spread over several named fields (``images``, ``documents``, ...)."""
    async with staging.stage(request, multifield_limits(config)) as staged:
        outcome = await orchestrator.upload_multifield(staged)

    return MultifieldUploadResponse(data=outcome.unwrap())
