"""
FastAPI application entry point.

Using an application factory pattern (create_app function) because:
- Easier to test with different configurations
- Explicit about initialization order

For local development:
    S3_MOCK_MODE=true uvicorn blobstore.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .api.dependencies import build_blob_store
from .api.routes import health, objects
from .config.settings import get_settings
from .core.storage.errors import (
    BlobStoreError,
    ConfigurationError,
    DecodeError,
    NotFoundError,
    StoreError,
    ValidationError,
)

logger = logging.getLogger(__name__)


# most specific first; the first isinstance match wins
_ERROR_STATUS: list[tuple[type[BlobStoreError], int, str]] = [
    (NotFoundError, status.HTTP_404_NOT_FOUND, "NOT_FOUND"),
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY, "INVALID_ARGUMENT"),
    (DecodeError, status.HTTP_422_UNPROCESSABLE_ENTITY, "DECODE_ERROR"),
    (ConfigurationError, status.HTTP_500_INTERNAL_SERVER_ERROR, "CONFIGURATION_ERROR"),
    (StoreError, status.HTTP_502_BAD_GATEWAY, "STORE_ERROR"),
]


def configure_logging(level: str) -> None:
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=getattr(logging, level.upper(), logging.INFO),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Builds the one BlobStore every request shares. Missing credentials
    raise ConfigurationError here, so the process fails before it
    accepts traffic.
    """
    settings = get_settings()

    logger.info(
        "Blobstore API starting",
        extra={"version": __version__, "mock_mode": settings.s3_mock_mode}
    )

    # a store attached before startup (tests, embedding apps) is used as-is
    if getattr(app.state, "blob_store", None) is None:
        missing_fields = settings.validate_required_fields()
        if missing_fields:
            logger.error(
                "Missing required configuration",
                extra={"missing_fields": missing_fields}
            )
            raise ConfigurationError(
                f"Missing required configuration: {', '.join(missing_fields)}"
            )
        app.state.blob_store = build_blob_store(settings)

    yield

    logger.info("Blobstore API shutting down")


def create_app() -> FastAPI:
    """
    Application factory.

    Creates and configures the FastAPI application.
    """
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="""
        Object storage over S3 and S3-compatible backends.

        - `PUT /api/v1/objects/{location}` stores the request body
        - `POST /api/v1/objects/{location}` stores a multipart form upload
        - `GET /api/v1/objects/{location}?format=raw|json|named_file` reads it back
        - `GET /api/v1/objects?prefix=...` lists names under a prefix
        - `GET /api/v1/signed-url?location=...` returns a temporary URL
        - `POST /api/v1/signed-url` signs an absolute object URL
        - `DELETE /api/v1/objects/{location}` removes it
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(
        health.router,
        prefix="/health",
        tags=["Health"],
    )

    app.include_router(
        objects.router,
        prefix="/api/v1/objects",
        tags=["Objects"],
    )

    app.include_router(
        objects.signed_url_router,
        prefix="/api/v1/signed-url",
        tags=["Objects"],
    )

    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "message": "Blobstore API",
            "version": __version__,
            "docs": "/docs",
            "health": "/health",
        }

    @app.exception_handler(BlobStoreError)
    async def blob_store_exception_handler(request: Request, exc: BlobStoreError):
        """Map storage errors onto HTTP status codes."""
        status_code, code = status.HTTP_500_INTERNAL_SERVER_ERROR, "STORAGE_ERROR"
        for error_type, mapped_status, mapped_code in _ERROR_STATUS:
            if isinstance(exc, error_type):
                status_code, code = mapped_status, mapped_code
                break

        log = logger.warning if status_code < 500 else logger.error
        log(
            "Storage error",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error_code": code,
                "error": str(exc),
            },
        )

        return JSONResponse(
            status_code=status_code,
            content={"error": {"code": code, "message": str(exc)}},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """
        Catch-all exception handler.

        Prevents stack traces from leaking to clients. We log the full
        error server-side but return a generic message.
        """
        logger.error(
            "Unhandled exception",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error": str(exc),
            },
            exc_info=exc,
        )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": {
                    "code": "INTERNAL_ERROR",
                    "message": "Internal server error. Please contact support if this persists.",
                }
            }
        )

    logger.info(
        "FastAPI application created",
        extra={"title": settings.api_title, "version": settings.api_version}
    )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "blobstore.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=settings.log_level.lower(),
    )
