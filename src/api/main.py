"""Main FastAPI application module for the assessment server.

This module creates and configures the FastAPI application instance with all
necessary middleware, routers, and event handlers.
"""

import time
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.api.middleware.error_handler import ErrorHandlerMiddleware
from src.api.middleware.logging_middleware import LoggingMiddleware
from src.api.middleware.request_id import RequestIDMiddleware, get_request_id
from src.core.config import get_settings
from src.core.events import create_start_app_handler, create_stop_app_handler
from src.utils.logger import get_logger

settings = get_settings()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Run the startup sequence before serving and the shutdown sequence after."""
    logger.info(
        f"Starting {settings.APP_NAME}",
        extra={
            "app_name": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "environment": settings.APP_ENV,
        }
    )
    await create_start_app_handler(app)()

    yield

    logger.info(f"Shutting down {settings.APP_NAME}")
    await create_stop_app_handler(app)()


def create_application() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        FastAPI: Configured FastAPI application instance
    """
    app = FastAPI(
        title=settings.APP_NAME,
        description="Behavioural competency assessment: assembly, scoring, simulation and psychometrics",
        version=settings.APP_VERSION,
        docs_url=f"{settings.API_V1_PREFIX}/docs" if settings.ENABLE_API_DOCS else None,
        redoc_url=f"{settings.API_V1_PREFIX}/redoc" if settings.ENABLE_API_DOCS else None,
        openapi_url=f"{settings.API_V1_PREFIX}/openapi.json" if settings.ENABLE_API_DOCS else None,
        lifespan=lifespan,
        swagger_ui_parameters={"displayRequestDuration": True},
    )

    app = register_exception_handlers(app)
    app = register_middleware(app)
    app = register_routers(app)

    if settings.ENABLE_METRICS:
        setup_metrics(app)

    return app


def error_body(code: Any, message: Any, request_id: Optional[str], details: Any = None) -> dict:
    error = {"code": code, "message": message, "request_id": request_id}
    if details is not None:
        error["details"] = details
    return {"success": False, "error": error}


def register_exception_handlers(app: FastAPI) -> FastAPI:
    """Register handlers that render errors in the standard envelope."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        request_id = get_request_id()
        logger.warning(
            f"HTTP exception: {exc.detail}",
            extra={
                "request_id": request_id,
                "status_code": exc.status_code,
                "path": request.url.path,
            }
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(exc.status_code, exc.detail, request_id),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        request_id = get_request_id()
        errors = jsonable_encoder(exc.errors())
        logger.warning(
            "Validation error",
            extra={
                "request_id": request_id,
                "errors": errors,
                "path": request.url.path,
            }
        )
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=error_body(status.HTTP_422_UNPROCESSABLE_ENTITY, "Validation error", request_id, errors),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        request_id = get_request_id()
        logger.error(
            f"Unhandled exception: {str(exc)}",
            extra={
                "request_id": request_id,
                "exception_type": type(exc).__name__,
                "path": request.url.path,
            },
            exc_info=True,
        )

        message = "An internal error occurred" if settings.APP_ENV == "production" else str(exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_body(status.HTTP_500_INTERNAL_SERVER_ERROR, message, request_id),
        )

    return app


def register_middleware(app: FastAPI) -> FastAPI:
    """Register application middleware.

    Starlette runs middleware in reverse order of registration, so the
    request ID is assigned before anything logs.
    """
    app.add_middleware(ErrorHandlerMiddleware, debug=settings.APP_DEBUG)
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Process-Time"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1024)

    if settings.APP_ENV == "production":
        app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.ALLOWED_HOSTS)

    @app.middleware("http")
    async def add_process_time_header(request: Request, call_next):
        start_time = time.perf_counter()
        response = await call_next(request)
        response.headers["X-Process-Time"] = f"{time.perf_counter() - start_time:.3f}"
        return response

    return app


def register_routers(app: FastAPI) -> FastAPI:
    """Register API routers.

    Health routes are served at the root; everything else under the API prefix.
    """
    from src.routers import assembly, health, psychometrics, scoring, simulation

    app.include_router(health.router)

    api_prefix = settings.API_V1_PREFIX
    for module in (scoring, assembly, simulation, psychometrics):
        app.include_router(module.router, prefix=api_prefix)

    return app


def setup_metrics(app: FastAPI) -> None:
    """Expose Prometheus metrics at ``/metrics``."""
    instrumentator = Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=True,
        should_instrument_requests_inprogress=True,
        excluded_handlers=[".*health.*", "/metrics"],
        inprogress_name="skillsoft_requests_inprogress",
        inprogress_labels=True,
    )
    instrumentator.instrument(app).expose(
        app,
        endpoint="/metrics",
        tags=["Metrics"],
        include_in_schema=False,
    )

    logger.info("Prometheus metrics enabled at /metrics")


app = create_application()


__all__ = ["app", "create_application"]
