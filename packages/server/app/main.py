"""
Team Tasks API Server

Entry point for the FastAPI application.
"""

from datetime import timedelta

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from app.core.config import get_settings
from app.core.database import create_engine, create_session_factory
from app.core.errors import ServerError, register_error_handlers
from app.core.logging import configure_logging
from app.core.middleware import CSRFMiddleware, ErrorEnvelopeMiddleware, SecurityHeadersMiddleware
from app.core.redis import close_redis, create_redis
from app.core.sessions import SessionManager
from teamtasks_shared.schemas.common import ErrorResponse
from app.api.v1 import router as api_v1_router
from app.api.v1.auth import router as auth_router

settings = get_settings()
log = structlog.get_logger()

ERROR_RESPONSES = {
    status: {"model": ErrorResponse} for status in (401, 403, 404, 409, 422)
}


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Team Tasks",
        description="Team-scoped task tracking with role-based access.",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    register_error_handlers(app)

    # Middleware (last added is outermost)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(CSRFMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization", "X-CSRF-Token"],
    )
    app.add_middleware(ErrorEnvelopeMiddleware)

    app.include_router(
        auth_router, prefix="/auth", tags=["Authentication"], responses=ERROR_RESPONSES
    )
    app.include_router(api_v1_router, prefix="/api/v1", responses=ERROR_RESPONSES)

    @app.get("/health", tags=["System"])
    async def health_check():
        """Health check endpoint for liveness probes."""
        return {"status": "ok"}

    @app.get("/ready", tags=["System"])
    async def readiness_check():
        """Readiness check: the database and the session store must both answer."""
        try:
            async with app.state.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            await app.state.sessions.ping()
        except Exception as exc:
            log.warning("ready.check_failed", error=str(exc))
            raise ServerError("Service not ready")
        return {"status": "ready"}

    @app.on_event("startup")
    async def on_startup():
        configure_logging(settings.log_level, settings.log_format)
        app.state.engine = create_engine(settings)
        app.state.session_factory = create_session_factory(app.state.engine)
        app.state.redis = create_redis(settings)
        app.state.sessions = SessionManager(
            app.state.redis, timedelta(hours=settings.session_ttl_hours)
        )
        log.info("Team Tasks starting", session_ttl_hours=settings.session_ttl_hours)

    @app.on_event("shutdown")
    async def on_shutdown():
        log.info("Team Tasks shutting down")
        await app.state.engine.dispose()
        await close_redis(app.state.redis)

    return app


app = create_app()
