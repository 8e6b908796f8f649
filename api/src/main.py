"""Lekol Alez API - Main Application."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.assistant.router import router as assistant_router
from src.assistant.service import AssistantContextService
from src.certificates.repository import CertificateRepository
from src.certificates.router import router as certificates_router
from src.certificates.router import verify_router
from src.certificates.service import CertificateService
from src.config import Settings, get_settings
from src.core.context import get_request_id
from src.core.database.async_cassandra import (
    init_async_cassandra,
    shutdown_async_cassandra,
)
from src.core.errors import DomainError
from src.core.logging import configure_structlog, get_logger
from src.core.middleware import RequestContextMiddleware
from src.core.redis import init_redis, shutdown_redis
from src.courses.repository import CourseRepository
from src.courses.router import router as courses_router
from src.courses.service import CourseService
from src.health import router as health_router
from src.notifications.repository import NotificationRepository
from src.notifications.router import router as notifications_router
from src.notifications.service import NotificationService
from src.progress.repository import EnrollmentRepository
from src.progress.router import enrollments_router
from src.progress.router import router as progress_router
from src.progress.service import ProgressService
from src.quizzes.repository import QuizAttemptRepository
from src.quizzes.router import router as quizzes_router
from src.quizzes.service import QuizService


# Configure logging early (before creating logger)
settings = get_settings()
configure_structlog(settings, log_dir=Path(settings.log_dir))

logger = get_logger(__name__)


def build_services(app: FastAPI, session: Any, settings: Settings, redis: Any = None) -> None:
    """Create repositories and services and expose them on ``app.state``."""
    keyspace = settings.cassandra_keyspace

    notification_service = NotificationService(
        NotificationRepository(session, keyspace), redis=redis
    )
    course_service = CourseService(CourseRepository(session, keyspace), settings)
    progress_service = ProgressService(
        EnrollmentRepository(session, keyspace),
        course_service,
        notification_service=notification_service,
        settings=settings,
    )
    quiz_service = QuizService(
        QuizAttemptRepository(session, keyspace),
        progress_service,
        notification_service=notification_service,
        settings=settings,
    )
    certificate_service = CertificateService(
        CertificateRepository(session, keyspace),
        progress_service,
        quiz_service=quiz_service,
        notification_service=notification_service,
        settings=settings,
    )

    app.state.notification_service = notification_service
    app.state.course_service = course_service
    app.state.progress_service = progress_service
    app.state.quiz_service = quiz_service
    app.state.certificate_service = certificate_service
    app.state.assistant_service = AssistantContextService(course_service, progress_service)


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

    # Redis is optional: without it notifications are stored but not pushed
    redis_client = None
    try:
        redis_client = await init_redis()
    except Exception as e:
        logger.warning(
            "redis_init_skipped",
            error=str(e),
            message="Running without Redis - real-time notifications disabled",
        )

    try:
        session = await init_async_cassandra()
        build_services(app, session, settings, redis=redis_client)
        logger.info("services_initialized", redis_enabled=redis_client is not None)
    except Exception as e:
        logger.warning(
            "database_init_skipped",
            error=str(e),
            message="Running without database connection",
        )

    yield

    # Shutdown
    logger.info("shutting_down_application")
    await shutdown_redis()
    await shutdown_async_cassandra()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    # Stack traces are never rendered; the handlers below log them instead
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Lekol Alez learning platform - API",
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

    @app.exception_handler(DomainError)
    async def domain_error_handler(request: Request, exc: DomainError) -> ORJSONResponse:
        """Map business errors to the error envelope with their stable code."""
        logger.info(
            "domain_error",
            code=exc.code,
            status_code=exc.status_code,
            path=request.url.path,
            method=request.method,
        )
        return ORJSONResponse(
            status_code=exc.status_code,
            content={
                "error": True,
                "code": exc.code,
                "message": exc.message,
                "status_code": exc.status_code,
                "request_id": _get_request_id_safe(request),
            },
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> ORJSONResponse:
        """Handle HTTP exceptions with safe error messages."""
        logger.warning(
            "http_exception",
            status_code=exc.status_code,
            detail=str(exc.detail),
            path=request.url.path,
            method=request.method,
        )

        return ORJSONResponse(
            status_code=exc.status_code,
            headers=getattr(exc, "headers", None),
            content={
                "error": True,
                "code": "http_error",
                "message": str(exc.detail)
                if exc.status_code < status.HTTP_500_INTERNAL_SERVER_ERROR
                else "Internal server error",
                "status_code": exc.status_code,
                "request_id": _get_request_id_safe(request),
            },
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> ORJSONResponse:
        """Handle validation errors with safe error messages."""
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
                "code": "validation_error",
                "message": "Validation error",
                "status_code": 422,
                "request_id": _get_request_id_safe(request),
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
        """Catch-all handler: log everything, expose nothing."""
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
                "code": "internal_error",
                "message": "An unexpected error occurred. Please try again later.",
                "status_code": 500,
                "request_id": _get_request_id_safe(request),
            },
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(courses_router)
    app.include_router(enrollments_router)
    app.include_router(progress_router)
    app.include_router(quizzes_router)
    app.include_router(certificates_router)
    app.include_router(verify_router)
    app.include_router(notifications_router)
    app.include_router(assistant_router)

    @app.get("/", include_in_schema=False)
    async def root(request: Request) -> dict[str, str]:
        """Root endpoint."""
        return {
            "message": "Lekol Alez API",
            "version": settings.app_version,
            "docs": f"{request.url}docs",
        }

    return app


app = create_app()
