"""Upload Relay Application.

This is the main entry point for the upload relay service. It accepts
multipart uploads, forwards each file to Cloudinary and returns the public
URLs. Local copies are staged under the upload directory and always removed.

Modules:
    - config: YAML + environment configuration (immutable AppSettings)
    - uploads: staging, Cloudinary store, orchestration and routes
"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import AppSettings, load_config
from app.uploads.cloudinary_store import CloudinaryStore
from app.uploads.errors import UploadError
from app.uploads.orchestrator import UploadOrchestrator
from app.uploads.router import router as upload_router
from app.uploads.staging import LocalStaging
from app.uploads.store import RemoteStore

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

# Silence verbose third-party loggers.
# httpx/httpcore log every TCP connection and TLS handshake to Cloudinary.
for _noisy in (
    "httpx",
    "httpcore",
    "httpcore.http11",
    "httpcore.connection",
    "python_multipart",
    "multipart",
):
    logging.getLogger(_noisy).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)

SERVER_MESSAGE = "File upload server is running"

ENDPOINTS = {
    "health": "/health",
    "singleUpload": "/api/upload/single",
    "multipleUpload": "/api/upload/multiple",
    "multifieldUpload": "/api/upload/multifield",
}

AVAILABLE_ROUTES = ["/", *ENDPOINTS.values()]


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def _error_body(message: str, **extra) -> dict:
    return {"success": False, "message": message, **extra}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown events."""
    # Startup
    config: AppSettings = app.state.config

    # Apply configured log level to root logger so that
    # `logging.level: "debug"` in relay.settings.yaml activates DEBUG output.
    configured_level = getattr(logging, config.logging.level.upper(), None)
    if configured_level is not None:
        logging.getLogger().setLevel(configured_level)
        logger.info("Root logger level set to %s", config.logging.level.upper())

    app.state.staging.ensure_upload_dir()
    logger.info("Upload directory: %s", app.state.staging.upload_dir.resolve())
    logger.info("Environment: %s", config.server.environment)
    logger.info(
        "Server URL: http://%s:%s", config.server.host, config.server.port
    )

    yield  # Application runs here

    # Shutdown
    await app.state.store.aclose()
    logger.info("Application shutdown complete")


def create_app(
    config: Optional[AppSettings] = None,
    store: Optional[RemoteStore] = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        config: Settings; loaded from YAML files and the environment if omitted.
        store: Remote store; a CloudinaryStore built from ``config`` if omitted.
    """
    config = config or load_config()
    uploads = config.uploads
    staging = LocalStaging(
        upload_dir=uploads.upload_dir,
        max_file_size_bytes=uploads.max_file_size_bytes,
        max_files=uploads.max_files,
    )
    store = store or CloudinaryStore.from_settings(config)

    app = FastAPI(
        title="Upload Relay API",
        description="Relays file uploads to Cloudinary and returns their public URLs",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.staging = staging
    app.state.store = store
    app.state.orchestrator = UploadOrchestrator(store, staging)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(upload_router)

    @app.get("/")
    async def root() -> dict:
        """Root status endpoint (used by hosting health checks)."""
        return {
            "status": "OK",
            "message": SERVER_MESSAGE,
            "timestamp": _timestamp(),
            "endpoints": ENDPOINTS,
        }

    @app.get("/health")
    async def health() -> dict:
        """Health check endpoint."""
        return {"status": "OK", "message": SERVER_MESSAGE, "timestamp": _timestamp()}

    _register_error_handlers(app, config)
    return app


def _register_error_handlers(app: FastAPI, config: AppSettings) -> None:
    """Translate errors into ``{success: false, message, ...}`` JSON bodies."""
    production = config.server.is_production

    def _cause(text: str) -> str:
        return "Something went wrong" if production else text

    @app.exception_handler(UploadError)
    async def upload_error_handler(request: Request, exc: UploadError) -> JSONResponse:
        if exc.status_code >= 500:
            body = _error_body(exc.message, error=_cause(exc.detail))
        else:
            body = _error_body(exc.message)
        return JSONResponse(status_code=exc.status_code, content=body)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code in (404, 405):
            return JSONResponse(
                status_code=404,
                content=_error_body("Route not found", availableRoutes=AVAILABLE_ROUTES),
            )
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Error: %s", exc)
        return JSONResponse(
            status_code=500,
            content=_error_body("Internal server error", error=_cause(str(exc))),
        )


app = create_app()


if __name__ == "__main__":
    _config = app.state.config
    uvicorn.run(app, host=_config.server.host, port=_config.server.port)
