"""FastAPI application entry point."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from starlette.exceptions import HTTPException as StarletteHTTPException

from inkwell.api.v1.router import api_router
from inkwell.config import settings
from inkwell.core.exceptions import AppException
from inkwell.core.firebase import initialize_firebase
from inkwell.core.redis_client import check_redis_connection, close_redis_connection
from inkwell.database import check_database_connection, engine
from inkwell.middleware.error_handler import (
    app_exception_handler,
    general_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from inkwell.middleware.logging import LoggingMiddleware, configure_logging

configure_logging()
logger = structlog.get_logger()


def _start_google_signin() -> None:
    # Without Firebase only /auth/google-signin is unavailable
    try:
        initialize_firebase(settings.firebase_credentials_path, settings.firebase_config_json)
    except Exception as e:
        logger.warning("google_signin_disabled", error=str(e))
    else:
        logger.info("google_signin_enabled")


async def _report_backing_services() -> None:
    database_up = await check_database_connection()
    redis_up = await check_redis_connection()
    log = logger.info if database_up else logger.error
    log(
        "backing_services_checked",
        database="up" if database_up else "down",
        redis="up" if redis_up else "down",
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    logger.info("application_startup", environment=settings.environment)
    _start_google_signin()
    await _report_backing_services()

    yield

    await engine.dispose()
    close_redis_connection()
    logger.info("application_shutdown")


def create_app() -> FastAPI:
    """Assemble middleware, error handlers, routes and metrics."""
    application = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Session and authorization backend for the Inkwell publishing platform",
        lifespan=lifespan,
    )

    # The refresh cookie needs credentialed CORS
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
    )
    application.add_middleware(LoggingMiddleware)

    application.add_exception_handler(AppException, app_exception_handler)  # type: ignore[arg-type]
    application.add_exception_handler(StarletteHTTPException, http_exception_handler)  # type: ignore[arg-type]
    application.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]
    application.add_exception_handler(Exception, general_exception_handler)

    application.include_router(api_router, prefix=settings.api_v1_prefix)

    Instrumentator(
        should_group_status_codes=True,
        excluded_handlers=["/docs", "/redoc", "/openapi.json", "/metrics"],
    ).instrument(application).expose(application, endpoint="/metrics", include_in_schema=False)

    @application.get("/", tags=["Root"])
    async def root() -> dict[str, str]:
        return {"name": settings.app_name, "version": settings.app_version, "docs": "/docs"}

    return application


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "inkwell.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        log_level=settings.log_level.lower(),
    )
