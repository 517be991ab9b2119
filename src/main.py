"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from .config import settings
from .config.redis import close_redis
from .core.container import Services, build_services
from .middleware.errors import register_exception_handlers
from .middleware.rate_limit import limiter, rate_limit_exceeded_handler
from .routers import files
from .tasks.periodic import start_periodic_tasks, stop_periodic_tasks
from .utils.helpers import format_file_size
from .utils.logger import configure_logging, get_logger

# Configure logging
configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    services: Services = app.state.services
    logger.info(
        "Starting application",
        version=settings.app_version,
        environment=settings.environment,
        progress_backend=services.settings.progress_backend,
        temp_dir=services.temp_cleanup.temp_dir,
    )
    await services.temp_cleanup.cleanup()
    tasks = start_periodic_tasks(services)
    yield
    # Shutdown
    logger.info("Shutting down application")
    await stop_periodic_tasks(tasks)
    await close_redis()


def create_app(services: Optional[Services] = None) -> FastAPI:
    """Create the application. Services are built from settings unless given."""
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="File upload API with multipart uploads to S3-compatible storage",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.services = services or build_services(settings)

    # Add rate limiting
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    @app.get("/health")
    async def health_check(request: Request):
        """Health check endpoint."""
        current: Services = request.app.state.services
        temp_stats = await current.temp_cleanup.get_stats()
        return {
            "status": "healthy",
            "version": settings.app_version,
            "active_large_uploads": current.admission.active,
            "temp_files": {
                **asdict(temp_stats),
                "total_size_human": format_file_size(temp_stats.total_size),
            },
        }

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "message": settings.app_name,
            "version": settings.app_version,
            "docs": "/docs",
        }

    app.include_router(files.router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
