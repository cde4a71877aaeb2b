"""
Studio Lifecycle API Server

Entry point for the FastAPI application.
"""

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import get_settings
from app.core.database import async_session_factory
from app.core.logging import configure_logging
from app.core.middleware import RequestContextMiddleware, SecurityHeadersMiddleware
from app.core.realtime import RedisRelay, build_realtime_channel, manager
from app.core.redis import close_redis
from app.api.v1 import router as api_v1_router
from app.api.v1.realtime import router as realtime_router
from app.services.scheduler import build_scheduler

settings = get_settings()
log = structlog.get_logger()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Studio Lifecycle",
        description="Client event delivery lifecycle, notifications and due-date reminders.",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    # Middleware (outermost first)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE"],
        allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
        expose_headers=["X-Request-ID"],
    )

    # API routes
    app.include_router(api_v1_router, prefix="/api/v1")

    # Real-time socket
    app.include_router(realtime_router, tags=["Real-time"])

    realtime = build_realtime_channel(settings.realtime_backend, manager)
    app.state.realtime = realtime
    app.state.scheduler = build_scheduler(async_session_factory, realtime, settings=settings)
    app.state.relay = RedisRelay(manager) if settings.realtime_backend == "redis" else None

    @app.get("/health", tags=["System"])
    async def health_check():
        """Health check endpoint for liveness probes."""
        return {"status": "ok"}

    @app.get("/ready", tags=["System"])
    async def readiness_check():
        """Readiness check endpoint for startup probes."""
        return {"status": "ready"}

    @app.on_event("startup")
    async def on_startup():
        configure_logging(settings.log_level, settings.log_format)
        log.info(
            "Studio Lifecycle starting",
            realtime=settings.realtime_backend,
            scheduler=settings.scheduler_enabled,
        )
        if app.state.relay is not None:
            app.state.relay.start()
        if settings.scheduler_enabled:
            app.state.scheduler.start()

    @app.on_event("shutdown")
    async def on_shutdown():
        log.info("Studio Lifecycle shutting down")
        await app.state.scheduler.stop()
        if app.state.relay is not None:
            await app.state.relay.stop()
        await close_redis()

    return app


app = create_app()
