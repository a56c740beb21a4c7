"""Mapify FastAPI Application.

Main entry point for the API server: API key management for registered users
and key-authenticated nearby POI search.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from mapify.api import router
from mapify.api.dependencies import (
    build_identity_verifier,
    build_key_cache,
    build_key_store,
    build_poi_client,
)
from mapify.config import Settings, get_settings
from mapify.models import ErrorCode, MapifyError
from mapify.services.auth import IdentityVerifier
from mapify.services.cache import KeyCache
from mapify.services.key_store import KeyStore
from mapify.services.osm import OverpassPOIClient

logger = logging.getLogger(__name__)

VERIFY_PATH = "/verify"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
    )


def _error_response(request: Request, status_code: int, content: dict) -> JSONResponse:
    # /verify callers branch on "valid" alone
    if request.url.path == VERIFY_PATH:
        content = {"valid": False, **content}
    return JSONResponse(status_code=status_code, content=content)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build collaborators that were not injected; close everything on shutdown."""
    settings: Settings = app.state.settings
    if app.state.key_store is None:
        app.state.key_store = build_key_store(settings)
    if app.state.key_cache is None:
        app.state.key_cache = build_key_cache(settings)
    if app.state.identity_verifier is None:
        app.state.identity_verifier = build_identity_verifier(settings)
    if app.state.poi_client is None:
        app.state.poi_client = build_poi_client(settings)
    logger.info(
        f"[API] Started (store={settings.key_store_backend}, cache={settings.key_cache_backend})"
    )
    yield
    await app.state.poi_client.close()
    await app.state.key_cache.close()
    await app.state.key_store.close()


def create_app(
    settings: Optional[Settings] = None,
    *,
    key_store: Optional[KeyStore] = None,
    key_cache: Optional[KeyCache] = None,
    identity_verifier: Optional[IdentityVerifier] = None,
    poi_client: Optional[OverpassPOIClient] = None,
) -> FastAPI:
    settings = settings or get_settings()

    app = FastAPI(
        title="Mapify API",
        description="API keys and nearby points-of-interest search",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.key_store = key_store
    app.state.key_cache = key_cache
    app.state.identity_verifier = identity_verifier
    app.state.poi_client = poi_client

    # Public API: any origin may call it
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(MapifyError)
    async def mapify_exception_handler(request: Request, exc: MapifyError):
        """Handle domain errors with their own status and code."""
        if exc.status_code >= 500:
            logger.error(
                f"[API] {request.method} {request.url.path} failed: {exc.code.value}",
                exc_info=exc.__cause__ or exc,
            )
        return _error_response(
            request,
            exc.status_code,
            {"error": exc.message, "code": exc.code.value},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle routing errors (404 unknown path, 405 wrong method)."""
        if exc.status_code == 405:
            return _error_response(
                request,
                405,
                {"error": "Method not allowed", "code": ErrorCode.METHOD_NOT_ALLOWED.value},
            )
        return _error_response(request, exc.status_code, {"error": str(exc.detail)})

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        """Handle malformed request bodies."""
        return _error_response(
            request,
            400,
            {"error": "Invalid request body", "code": ErrorCode.MISSING_PARAMETER.value},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle unexpected errors."""
        logger.exception(f"[API] Unhandled error on {request.method} {request.url.path}")
        return _error_response(
            request,
            500,
            {"error": "Internal server error", "code": ErrorCode.INTERNAL_ERROR.value},
        )

    app.include_router(router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy"}

    return app


configure_logging(get_settings().log_level)

app = create_app()
