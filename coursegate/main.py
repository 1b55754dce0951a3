"""Coursegate API - Main Application."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from coursegate.access.dependencies import (
    set_integrity_getter,
    set_query_service_getter,
    set_resolver_getter,
)
from coursegate.access.errors import AccessError, status_for
from coursegate.access.integrity import IntegrityScanner
from coursegate.access.orphans import OrphanDetector
from coursegate.access.resolver import RequestResolver
from coursegate.access.router import admin_router as access_admin_router
from coursegate.access.router import router as access_router
from coursegate.access.service import AccessQueryService
from coursegate.access.store import EnrollmentStore, RequestStore
from coursegate.catalog.service import CatalogService
from coursegate.config import get_settings
from coursegate.core.context import get_request_id
from coursegate.core.database import init_async_cassandra, shutdown_async_cassandra
from coursegate.core.logging import configure_structlog, get_logger
from coursegate.core.middleware import RequestContextMiddleware
from coursegate.core.redis import init_redis, shutdown_redis
from coursegate.health.router import router as health_router


# Configure logging early (before creating logger)
settings = get_settings()
configure_structlog(settings, log_dir=Path(settings.log_dir))

logger = get_logger(__name__)


# Application state for dependency injection
class AppState:
    """Application state container."""

    cassandra_session: Any = None
    catalog_service: CatalogService | None = None
    resolver: RequestResolver | None = None
    query_service: AccessQueryService | None = None
    integrity_scanner: IntegrityScanner | None = None


app_state = AppState()


def get_resolver() -> RequestResolver:
    """Get RequestResolver from app state."""
    if app_state.resolver is None:
        msg = "RequestResolver not initialized"
        raise RuntimeError(msg)
    return app_state.resolver


def get_query_service() -> AccessQueryService:
    """Get AccessQueryService from app state."""
    if app_state.query_service is None:
        msg = "AccessQueryService not initialized"
        raise RuntimeError(msg)
    return app_state.query_service


def get_integrity_scanner() -> IntegrityScanner:
    """Get IntegrityScanner from app state."""
    if app_state.integrity_scanner is None:
        msg = "IntegrityScanner not initialized"
        raise RuntimeError(msg)
    return app_state.integrity_scanner


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    settings = get_settings()
    logger.info(
        "starting_application",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
    )

    # Initialize Redis (non-critical - descriptors are read uncached without it)
    redis_client = None
    try:
        redis_client = await init_redis()
        logger.info("redis_initialized")
    except Exception as e:
        logger.warning(
            "redis_init_skipped",
            error=str(e),
            message="Running without Redis - catalog lookups are not cached",
        )

    # Initialize Cassandra (async)
    try:
        app_state.cassandra_session = await init_async_cassandra()
        logger.info("cassandra_initialized")
    except Exception as e:
        logger.error("cassandra_init_failed", error=str(e))
        raise

    session = app_state.cassandra_session
    keyspace = settings.cassandra_keyspace

    app_state.catalog_service = CatalogService(
        session=session,
        keyspace=keyspace,
        redis=redis_client,
        cache_ttl_seconds=settings.catalog_cache_ttl_seconds,
    )
    request_store = RequestStore(session=session, keyspace=keyspace)
    enrollment_store = EnrollmentStore(session=session, keyspace=keyspace)
    orphan_detector = OrphanDetector(app_state.catalog_service)

    app_state.resolver = RequestResolver(
        requests=request_store,
        enrollments=enrollment_store,
        catalog=app_state.catalog_service,
        orphans=orphan_detector,
        reason_max_length=settings.request_reason_max_length,
    )
    app_state.query_service = AccessQueryService(
        requests=request_store,
        catalog=app_state.catalog_service,
        orphans=orphan_detector,
        list_limit=settings.admin_list_limit,
    )
    app_state.integrity_scanner = IntegrityScanner(
        requests=request_store,
        enrollments=enrollment_store,
        orphans=orphan_detector,
    )
    logger.info("access_services_initialized")

    yield

    # Shutdown
    logger.info("shutting_down_application")
    await shutdown_redis()
    await shutdown_async_cassandra()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    # SECURITY: Always set debug=False so Starlette never renders stack traces.
    # The handlers below log full details and return safe messages.
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Access requests and enrollment for courses and question banks",
        debug=False,
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        openapi_url="/openapi.json" if settings.is_development else None,
    )

    # Request context middleware (must be added first - outermost)
    app.add_middleware(
        RequestContextMiddleware,
        log_requests=settings.log_requests,
        exclude_paths=settings.log_exclude_paths,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
        max_age=settings.cors_max_age,
    )

    def _get_request_id_safe(request: Request) -> str | None:
        """Get request_id from request state or context."""
        if hasattr(request.state, "request_id"):
            return request.state.request_id
        return get_request_id()

    @app.exception_handler(AccessError)
    async def access_error_handler(
        request: Request, exc: AccessError
    ) -> ORJSONResponse:
        """Render typed access outcomes with their stable code."""
        status_code = status_for(exc)

        # Concurrency losers are expected; only log them at info
        if exc.code == "not_found":
            logger.info("access_not_found", path=request.url.path, message=exc.message)
        elif exc.code != "integrity_fault":
            logger.warning(
                "access_error",
                code=exc.code,
                path=request.url.path,
                method=request.method,
            )

        return ORJSONResponse(
            status_code=status_code,
            content={
                "error": True,
                "code": exc.code,
                "message": exc.message,
                "status_code": status_code,
                "request_id": _get_request_id_safe(request),
            },
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> ORJSONResponse:
        """Handle HTTP exceptions with safe error messages."""
        request_id = _get_request_id_safe(request)

        logger.warning(
            "http_exception",
            status_code=exc.status_code,
            detail=str(exc.detail),
            path=request.url.path,
            method=request.method,
        )

        return ORJSONResponse(
            status_code=exc.status_code,
            content={
                "error": True,
                "message": str(exc.detail)
                if exc.status_code < status.HTTP_500_INTERNAL_SERVER_ERROR
                else "Internal server error",
                "status_code": exc.status_code,
                "request_id": request_id,
            },
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> ORJSONResponse:
        """Handle validation errors (safe to expose)."""
        request_id = _get_request_id_safe(request)

        logger.warning(
            "validation_error",
            errors=exc.errors(),
            path=request.url.path,
            method=request.method,
        )

        return ORJSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "error": True,
                "message": "Validation error",
                "status_code": 422,
                "request_id": request_id,
                "details": [
                    {
                        "field": ".".join(str(loc) for loc in err.get("loc", [])),
                        "message": err.get("msg", "Invalid value"),
                    }
                    for err in exc.errors()
                ],
            },
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(
        request: Request, exc: Exception
    ) -> ORJSONResponse:
        """Catch-all handler for unhandled exceptions.

        SECURITY: Never expose stack traces or internal error details to users.
        """
        request_id = _get_request_id_safe(request)

        logger.exception(
            "unhandled_exception",
            error_type=type(exc).__name__,
            error_message=str(exc),
            path=request.url.path,
            method=request.method,
        )

        return ORJSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": True,
                "message": "An unexpected error occurred. Please try again later.",
                "status_code": 500,
                "request_id": request_id,
            },
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(access_router)
    app.include_router(access_admin_router)

    @app.get("/", include_in_schema=False)
    async def root(request: Request) -> dict[str, str]:
        """Root endpoint."""
        return {
            "message": "Coursegate API",
            "version": settings.app_version,
            "docs": f"{request.url}docs",
        }

    return app


# Configure router dependencies before creating app
set_resolver_getter(get_resolver)
set_query_service_getter(get_query_service)
set_integrity_getter(get_integrity_scanner)


app = create_app()
