"""
FastAPI Backend for the device fingerprint server.

Collects browser/device fingerprints and resolves each one to a known device
profile or a new one.
"""

import logging
from datetime import datetime, timezone

from dotenv import load_dotenv

load_dotenv()

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from api.dependencies import get_geoip_service
from api.routes import fingerprints
from api.schemas import ErrorResponse
from fingerprint import __version__
from fingerprint.config import get_settings
from fingerprint.database import init_db
from fingerprint.errors import ConcurrentModification, InvalidInput, StoreUnavailable
from fingerprint.utils.logging import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    setup_logging()
    logger.info("Starting device fingerprint API...")
    try:
        init_db()
    except Exception as e:
        # The store reports itself unavailable per request until the database is back
        logger.error(f"[STARTUP] Failed to initialise database: {e}")
    get_geoip_service()  # Open the GeoIP database once

    yield
    # Shutdown
    logger.info("Shutting down...")
    get_geoip_service().close()


app = FastAPI(
    title="Device Fingerprint API",
    description="Device fingerprint collection and matching",
    version=__version__,
    lifespan=lifespan,
)

# CORS - the web SDK posts from the site's own origin (configured via API_CORS_ORIGINS env var)
settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.api.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
)

app.add_middleware(GZipMiddleware, minimum_size=500)

# Include routers
app.include_router(fingerprints.router, prefix="/api/v1/fingerprints", tags=["fingerprints"])


def _error_response(request: Request, status_code: int, error: str, message: str, details=None) -> JSONResponse:
    body = ErrorResponse(
        timestamp=datetime.now(timezone.utc),
        path=request.url.path,
        error=error,
        message=message,
        details=details or [],
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


def _describe_validation_error(err: dict) -> str:
    location = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
    return f"{location} {err.get('msg', 'is invalid')}".strip()


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError):
    details = [_describe_validation_error(err) for err in exc.errors()]
    return _error_response(request, 400, "Bad Request", "Validation failed", details)


@app.exception_handler(InvalidInput)
async def handle_invalid_input(request: Request, exc: InvalidInput):
    return _error_response(request, 400, "Bad Request", str(exc), exc.details)


@app.exception_handler(ConcurrentModification)
async def handle_concurrent_modification(request: Request, exc: ConcurrentModification):
    logger.warning(str(exc))
    return _error_response(request, 409, "Conflict", "Device profile was modified concurrently, retry the request")


@app.exception_handler(StoreUnavailable)
async def handle_store_unavailable(request: Request, exc: StoreUnavailable):
    logger.error(f"Profile store unavailable: {exc}")
    return _error_response(request, 503, "Service Unavailable", "Profile store unavailable")


@app.exception_handler(Exception)
async def handle_unexpected_error(request: Request, exc: Exception):
    logger.exception("Unexpected error")
    return _error_response(request, 500, "Internal Server Error", "Internal server error")


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "version": __version__, "service": "Device Fingerprint Server"}
