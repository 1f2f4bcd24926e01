"""FastAPI application entry point."""

import structlog
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from marketplace_sync import __version__
from marketplace_sync.api.v1.router import api_router
from marketplace_sync.config import get_settings
from marketplace_sync.infrastructure.database.connection import (
    close_session_factory,
    get_session_factory,
)
from marketplace_sync.infrastructure.redis import CacheService, close_redis, get_redis_client
from marketplace_sync.services.scheduler import build_scheduler

structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer() if get_settings().debug else structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(get_settings().log_level),
    context_class=dict,
    logger_factory=structlog.PrintLoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup and shutdown events."""
    settings = get_settings()
    logger.info(
        "Starting marketplace sync service",
        app_env=settings.app_env,
        debug=settings.debug,
    )

    http_client = httpx.AsyncClient(timeout=settings.marketplace_http_timeout_seconds)
    cache = CacheService(await get_redis_client())
    scheduler = build_scheduler(settings, get_session_factory(), http_client, cache=cache)
    app.state.scheduler = scheduler

    if settings.marketplace_sync_enabled:
        scheduler.start()
    else:
        logger.info("In-process marketplace sync disabled")

    yield

    await scheduler.shutdown()
    await http_client.aclose()
    await close_redis()
    await close_session_factory()
    logger.info("Shutting down marketplace sync service")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Marketplace Sync API",
        description="Marketplace order synchronization for the employee portal",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router, prefix="/api/v1")

    return app


app = create_app()


def run() -> None:
    """Run the application using uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "marketplace_sync.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        # Each worker would run its own scheduler
        workers=1 if settings.debug or settings.marketplace_sync_enabled else settings.api_workers,
    )


if __name__ == "__main__":
    run()
