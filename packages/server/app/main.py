"""
TaskHive API Server

Entry point for the FastAPI application.
"""

import structlog
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.responses import JSONResponse

from app.core.config import get_settings
from app.core.database import get_session
from app.core.errors import register_exception_handlers
from app.core.logging_config import configure_logging
from app.core.middleware import CSRFMiddleware, SecurityHeadersMiddleware
from app.core.redis import close_redis, get_redis
from app.api.v1 import router as api_v1_router

settings = get_settings()
configure_logging(settings.log_level, settings.log_format)
log = structlog.get_logger()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="TaskHive",
        description="Team and task coordination: organizations, membership and roles.",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    register_exception_handlers(app)

    # Middleware (order matters, last added is outermost)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(CSRFMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization", "X-CSRF-Token"],
    )

    # API routes
    app.include_router(api_v1_router, prefix="/api/v1")

    @app.get("/health", tags=["System"])
    async def health_check():
        """Health check endpoint for liveness probes."""
        return {"status": "ok"}

    @app.get("/ready", tags=["System"])
    async def readiness_check(session: AsyncSession = Depends(get_session)):
        """Readiness check: the database and Redis must both answer."""
        checks = {}
        try:
            await session.execute(text("SELECT 1"))
            checks["database"] = "ok"
        except Exception as exc:
            log.warning("ready.database_unavailable", error=str(exc))
            checks["database"] = "unavailable"
        try:
            redis = await get_redis()
            await redis.ping()
            checks["redis"] = "ok"
        except Exception as exc:
            log.warning("ready.redis_unavailable", error=str(exc))
            checks["redis"] = "unavailable"

        if all(v == "ok" for v in checks.values()):
            return {"status": "ready", "checks": checks}
        return JSONResponse(status_code=503, content={"status": "unavailable", "checks": checks})

    @app.on_event("startup")
    async def on_startup():
        log.info("TaskHive starting", debug=settings.debug)

    @app.on_event("shutdown")
    async def on_shutdown():
        log.info("TaskHive shutting down")
        await close_redis()

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host=settings.host, port=settings.port, reload=settings.debug)
