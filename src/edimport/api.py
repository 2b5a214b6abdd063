"""FastAPI application for the EDI import service."""

import logging
import os
import uuid
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, BinaryIO, Dict, Optional

from fastapi import (
    APIRouter,
    Depends,
    FastAPI,
    File,
    HTTPException,
    Request,
    UploadFile,
    status,
)
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from edimport.auth import verify_api_key
from edimport.classifier import FileKind, probe_kind
from edimport.config import ImporterConfig, get_config
from edimport.decoders.header import read_header
from edimport.dependencies import AppResources, get_app_config
from edimport.exceptions import EdiError, StorageWriteFailed
from edimport.models import PartyIdentity
from edimport.services.staging import normalize_to_utf8
from edimport.services.upload_service import save_upload_with_limit, store_upload
from edimport.version import VERSION

logger = logging.getLogger(__name__)

TMP_DIR_NAME = "tmp"

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["10/minute"],
    swallow_errors=True,
)

router = APIRouter()


class UploadResponse(BaseModel):
    name: str
    size: int
    sha256: str


class ClassifyResponse(BaseModel):
    kind: FileKind
    buyer: Optional[PartyIdentity] = None
    seller: Optional[PartyIdentity] = None


def get_allowed_origins() -> list[str]:
    """Get allowed CORS origins from environment."""
    origins = os.getenv("ALLOWED_ORIGINS", "http://localhost:5173")
    return [origin.strip() for origin in origins.split(",") if origin.strip()]


def _max_upload_bytes(config: ImporterConfig) -> int:
    return config.max_upload_size_mb * 1024 * 1024


def _require_filename(file: UploadFile) -> str:
    name = Path(file.filename or "").name
    if not name:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Upload must carry a file name",
        )
    return name


def _classify_sample(
    source: BinaryIO, filename: str, config: ImporterConfig
) -> ClassifyResponse:
    """Stage a sample in the scratch directory and inspect it."""
    tmp_dir = config.data_dir / TMP_DIR_NAME
    tmp_dir.mkdir(parents=True, exist_ok=True)
    raw_path = tmp_dir / f"{uuid.uuid4()}-{filename}"
    text_path = raw_path.with_name(raw_path.name + ".utf8")

    try:
        save_upload_with_limit(source, raw_path, _max_upload_bytes(config))
        normalize_to_utf8(raw_path, text_path)
        header = read_header(text_path)
        return ClassifyResponse(
            kind=probe_kind(text_path), buyer=header.buyer, seller=header.seller
        )
    finally:
        raw_path.unlink(missing_ok=True)
        text_path.unlink(missing_ok=True)


@router.get("/health")
@limiter.exempt
async def health_check() -> Dict[str, Any]:
    """Health check endpoint for container orchestration."""
    return {
        "status": "healthy",
        "service": "edi-import",
        "version": VERSION,
    }


@router.post(
    "/uploads",
    response_model=UploadResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        401: {"description": "Missing or invalid API key"},
        400: {"description": "Upload without file name"},
        413: {"description": "File exceeds configured size limit"},
        429: {"description": "Rate limit exceeded"},
    },
)
@limiter.limit("10/minute")
async def upload_edi_file(
    request: Request,
    file: UploadFile = File(..., description="EDI file"),
    user: dict[str, Any] = Depends(verify_api_key),
    config: ImporterConfig = Depends(get_app_config),
) -> UploadResponse:
    """Queue an EDI file for the next import run."""
    _ = user
    filename = _require_filename(file)
    destination, size, digest = await run_in_threadpool(
        store_upload, file.file, filename, config.data_dir, _max_upload_bytes(config)
    )
    logger.info("Stored upload %s (%d bytes, sha256 %s)", destination, size, digest[:12])
    return UploadResponse(name=destination.name, size=size, sha256=digest)


@router.post(
    "/classify",
    response_model=ClassifyResponse,
    responses={
        401: {"description": "Missing or invalid API key"},
        413: {"description": "File exceeds configured size limit"},
        422: {"description": "File header can't be decoded"},
        429: {"description": "Rate limit exceeded"},
    },
)
@limiter.limit("20/minute")
async def classify_edi_file(
    request: Request,
    file: UploadFile = File(..., description="EDI file"),
    user: dict[str, Any] = Depends(verify_api_key),
    config: ImporterConfig = Depends(get_app_config),
) -> ClassifyResponse:
    """Detect the kind and parties of an EDI file without importing it."""
    _ = user
    filename = _require_filename(file)
    return await run_in_threadpool(_classify_sample, file.file, filename, config)


async def rate_limit_exceeded_handler(
    request: Request, exc: RateLimitExceeded
) -> JSONResponse:
    """Rate limit exceeded handler."""
    return JSONResponse(
        status_code=429,
        content={"detail": "Rate limit exceeded. Please try again later."},
    )


async def edi_error_handler(request: Request, exc: EdiError) -> JSONResponse:
    """Map EDI errors to a stable API error payload."""
    status_code = (
        status.HTTP_500_INTERNAL_SERVER_ERROR
        if isinstance(exc, StorageWriteFailed)
        else status.HTTP_422_UNPROCESSABLE_CONTENT
    )
    return JSONResponse(
        status_code=status_code,
        content={
            "error": {
                "code": exc.code,
                "message": exc.message,
                "details": exc.details,
            }
        },
    )


def create_app(config: Optional[ImporterConfig] = None) -> FastAPI:
    """Build the API application.

    Resources are bound at startup; without an explicit config the global
    environment-based one is used.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        app.state.edimport_resources = AppResources(config=config or get_config())
        yield

    app = FastAPI(
        title="EDI Import Service",
        description="Receive and classify supplier EDI catalog files",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.limiter = limiter

    app.add_middleware(
        CORSMiddleware,
        allow_origins=get_allowed_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_exception_handler(EdiError, edi_error_handler)
    app.include_router(router)
    return app


app = create_app()
