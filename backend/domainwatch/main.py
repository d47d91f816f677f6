"""Main FastAPI application."""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .config import Settings, settings
from .dependencies import format_validation_errors
from .errors import AppError, RateLimitExceeded
from .routers import dashboard_router, monitoring_router, probes_router
from .services.container import MonitoringContainer, build_container
from .utils.responses import failure

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown."""
    container: MonitoringContainer = app.state.container
    config = container.settings
    logger.info("Starting domainwatch")

    if config.snapshot_path:
        container.snapshot.load(config.snapshot_path)

    if config.scheduler_enabled:
        container.scheduler.start()

    yield

    container.scheduler.stop()
    if config.snapshot_path:
        try:
            container.snapshot.save(config.snapshot_path)
        except OSError as e:
            logger.error(f"Failed to write state snapshot: {e}")
    logger.info("Shutdown complete")


def register_exception_handlers(app: FastAPI) -> None:
    """Render every failure as ``{"success": false, "error": ...}``."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        headers = None
        if isinstance(exc, RateLimitExceeded):
            headers = {"Retry-After": str(exc.retry_after)}
        if exc.status_code >= 500:
            logger.warning(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
        return failure(exc.message, exc.status_code, headers)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return failure(format_validation_errors(exc.errors()), 400)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return failure(str(exc.detail), exc.status_code, getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return failure("Internal server error", 500)


def create_app(
    app_settings: Optional[Settings] = None,
    container: Optional[MonitoringContainer] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    app_settings = app_settings or settings
    app = FastAPI(
        title="domainwatch",
        description="Domain health monitoring - TLS certificates, security headers, and performance",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.container = container or build_container(app_settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Retry-After"],
    )

    register_exception_handlers(app)

    app.include_router(monitoring_router)
    app.include_router(dashboard_router)
    app.include_router(probes_router)

    @app.get("/health")
    async def health_check():
        state = app.state.container
        return {
            "status": "healthy",
            "version": __version__,
            "rules": len(state.rules),
            "scheduler": state.scheduler.running,
        }

    return app


# Create the application instance
app = create_app()


def run():
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.web_port)


if __name__ == "__main__":
    run()
