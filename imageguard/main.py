"""
Main FastAPI application for imageguard.
"""
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from imageguard.api.v1.api import api_router
from imageguard.core.config import settings
from imageguard.core.database import init_db
from imageguard.core.exceptions import (
    BackupArtifactError,
    CategoryNotFoundError,
    ConflictError,
    ImageGuardException,
    ImageStoreUnavailableError,
    InvalidCategoryIdError,
    RecordStoreUnavailableError,
)
from imageguard.core.logging_config import setup_logging, log_info, log_warning, log_error
from imageguard.middleware.request_logging import request_id_ctx, RequestLoggingMiddleware
from imageguard.services.file_store import FileStore

# -----------------------------------------------------------------------------
# Startup / Shutdown
# -----------------------------------------------------------------------------
setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    log_info("Starting up imageguard service...")
    try:
        init_db()
        log_info("Database initialization completed!")
        if not settings.images_path.is_dir():
            log_warning(f"Images directory does not exist yet, creating it: {settings.images_path}")
        FileStore(settings.images_path).ensure_directories()
    except Exception as exc:
        log_error(exc)
        raise
    yield
    log_info("Shutting down imageguard service...")


# -----------------------------------------------------------------------------
# App Initialization
# -----------------------------------------------------------------------------
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Integrity checks, corrections and migrations for category images",
    openapi_url=f"{settings.api_v1_prefix}/openapi.json",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(RequestLoggingMiddleware)


@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    """Add X-Process-Time header."""
    start_time = time.time()
    response = await call_next(request)
    response.headers["X-Process-Time"] = str(time.time() - start_time)
    return response

# -----------------------------------------------------------------------------
# Exception Handlers
# -----------------------------------------------------------------------------
ERROR_STATUS_CODES = (
    (CategoryNotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (ImageStoreUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (RecordStoreUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (InvalidCategoryIdError, status.HTTP_400_BAD_REQUEST),
    (BackupArtifactError, status.HTTP_400_BAD_REQUEST),
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle FastAPI request validation errors."""
    request_id = request_id_ctx.get()
    errors = [
        {"loc": err.get("loc"), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]
    log_warning(
        "Request validation failed",
        request_id=request_id,
        path=request.url.path,
        method=request.method,
        errors=errors,
    )
    return JSONResponse(
        status_code=422,
        content={"error": "validation_error", "message": errors, "request_id": request_id},
    )


@app.exception_handler(ImageGuardException)
async def imageguard_exception_handler(request: Request, exc: ImageGuardException):
    request_id = request_id_ctx.get()
    log_error(exc, request_id=request_id)

    status_code = next(
        (code for exc_type, code in ERROR_STATUS_CODES if isinstance(exc, exc_type)),
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )

    message = (
        "An unexpected internal error occurred."
        if settings.environment == "production" and status_code == 500
        else str(exc)
    )
    return JSONResponse(
        status_code=status_code,
        content={"error": type(exc).__name__, "message": message, "request_id": request_id},
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    request_id = request_id_ctx.get()
    log_error(exc, request_id=request_id)
    msg = (
        "An unexpected error occurred. Please try again later."
        if settings.environment == "production"
        else str(exc)
    )
    return JSONResponse(
        status_code=500,
        content={"error": "internal_server_error", "message": msg, "request_id": request_id},
    )

# -----------------------------------------------------------------------------
# API Routers
# -----------------------------------------------------------------------------
app.include_router(api_router, prefix=settings.api_v1_prefix)


@app.get("/")
async def root():
    return {"service": settings.app_name, "version": settings.app_version, "docs": "/docs"}
