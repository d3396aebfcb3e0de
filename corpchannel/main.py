"""
FastAPI application factory and configuration.
"""
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from corpchannel.core.config import Settings, get_settings
from corpchannel.core.logging import setup_logging, get_logger
from corpchannel.api import messages, health, metrics
from corpchannel.api.metrics import MetricsMiddleware, set_startup_time
from corpchannel.storage.factory import create_store


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the message store once per process and release it on shutdown."""
    logger = get_logger(__name__)
    logger.info("Starting application...")
    settings: Settings = app.state.settings

    Path(settings.upload_dir).mkdir(parents=True, exist_ok=True)
    app.state.store = create_store(settings)

    # Record startup time for metrics
    set_startup_time()

    yield

    logger.info("Shutting down application...")
    app.state.store.close()


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report schema violations as a generic 400."""
    get_logger(__name__).warning(
        "Request validation failed",
        extra={"extra_data": {"path": request.url.path, "errors": exc.errors()}}
    )
    return JSONResponse(status_code=400, content={"detail": "Invalid message data"})


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()

    setup_logging(settings)
    logger = get_logger(__name__)

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="One-way broadcast channel: post, view, pin, react to and search messages",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(MetricsMiddleware)

    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    app.include_router(messages.router)
    app.include_router(health.router)
    app.include_router(metrics.router)

    # Uploaded media, read-only; the directory is created during startup
    app.mount(
        settings.uploads_url_path,
        StaticFiles(directory=settings.upload_dir, check_dir=False),
        name="uploads",
    )

    logger.info(
        "Application created",
        extra={
            "extra_data": {
                "app_name": settings.app_name,
                "version": settings.app_version,
                "storage_backend": settings.storage_backend,
            }
        }
    )

    return app


def run() -> None:
    """Serve the application with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "corpchannel.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


# Create the application instance
app = create_app()
