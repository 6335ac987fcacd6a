import asyncio
import os
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.exc import OperationalError

from .api.v1 import api_router
from .config import get_settings
from .core.database import create_tables
from .core.logging_config import apply_logging_preferences, configure_logging
from .exceptions import CampusError, ConfigurationError, ConflictError, TransientBackendError
from .services.workflow.dispatcher import run_forever

settings = get_settings()

configure_logging(settings)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    apply_logging_preferences()
    logger.info("Starting Campus API", version="0.1.0")
    try:
        create_tables()
        logger.info("Database tables created/verified")
    except Exception as e:
        logger.error("Failed to initialize database", error=str(e))
        raise

    stop_event = asyncio.Event()
    dispatcher_task = None
    if settings.workflow_dispatcher_enabled:
        dispatcher_task = asyncio.create_task(run_forever(stop_event=stop_event))

    yield

    if dispatcher_task is not None:
        stop_event.set()
        await dispatcher_task
    logger.info("Shutting down Campus API")


def create_application() -> FastAPI:
    app = FastAPI(
        title="Campus",
        description="Course completion, certificates and marketing workflow automation",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/api/v1/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(CampusError)
    async def campus_exception_handler(request: Request, exc: CampusError):
        status_code = 500
        if isinstance(exc, ConfigurationError):
            status_code = 422
        elif isinstance(exc, ConflictError):
            status_code = 409
        elif isinstance(exc, TransientBackendError):
            status_code = 503
        logger.error(
            "Unhandled domain error",
            path=request.url.path,
            error_code=exc.error_code,
            error=exc.message,
        )
        return JSONResponse(status_code=status_code, content=exc.to_dict())

    @app.exception_handler(OperationalError)
    async def database_unavailable_handler(request: Request, exc: OperationalError):
        logger.error("Database unavailable", path=request.url.path, error=str(exc))
        error = TransientBackendError("Database unavailable", error_code="DATABASE_UNAVAILABLE")
        return JSONResponse(status_code=503, content=error.to_dict())

    @app.exception_handler(Exception)
    async def global_exception_handler(request, exc):
        logger.error(
            "Unhandled exception occurred",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=exc,
        )
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "message": "An unexpected error occurred. Please try again later.",
                "request_id": getattr(request.state, "request_id", None),
            }
        )

    # Health check at root
    from .api.v1.endpoints import health
    app.include_router(health.router, tags=["health"])

    # Rendered certificates are served from local storage unless a CDN URL is configured
    if settings.certificate_base_url.startswith("/"):
        os.makedirs(settings.certificate_storage_dir, exist_ok=True)
        app.mount(
            settings.certificate_base_url.rstrip("/"),
            StaticFiles(directory=settings.certificate_storage_dir),
            name="certificates",
        )

    app.include_router(api_router, prefix="/api/v1")

    return app


app = create_application()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "campus.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        log_level="info",
        access_log=False,
    )
