"""FastAPI main application entry point."""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from docutrack.core.config import Settings, settings as default_settings
from docutrack.core.middleware import setup_middleware
from docutrack.core.exceptions import DocuTrackError
from docutrack.wiring import ServiceContainer, build_container

from docutrack.api.auth import router as auth_router
from docutrack.api.admin import router as admin_router
from docutrack.api.requests import router as requests_router
from docutrack.api.tracking import router as tracking_router

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if default_settings.DEBUG else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("docutrack")


async def sweep_sessions_periodically(container: ServiceContainer, interval: float) -> None:
    """Destroy expired sessions every ``interval`` seconds until cancelled."""
    while True:
        await asyncio.sleep(interval)
        try:
            result = container.auth_service.cleanup_expired_sessions()
        except Exception:
            logger.exception("Session sweep failed")
            continue
        if result["cleaned_sessions"]:
            logger.info("🧹 Swept %d expired session(s)", result["cleaned_sessions"])


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    container: ServiceContainer = app.state.container
    logger.info("🚀 Starting %s API", container.settings.APP_NAME)
    sweeper = asyncio.create_task(
        sweep_sessions_periodically(container, container.settings.SESSION_SWEEP_INTERVAL_SECONDS)
    )

    yield

    sweeper.cancel()
    try:
        await sweeper
    except asyncio.CancelledError:
        pass
    logger.info("🔻 Shutting down %s API", container.settings.APP_NAME)


def create_app(settings: Optional[Settings] = None, container: Optional[ServiceContainer] = None) -> FastAPI:
    """Build the app around a container; tests pass their own."""
    settings = settings or (container.settings if container else default_settings)
    app = FastAPI(
        title=f"{settings.APP_NAME} API",
        description="University document request tracking portal",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.container = container or build_container(settings)

    # Middleware
    setup_middleware(app, settings)

    # Exception handler for errors that escape the service layer
    @app.exception_handler(DocuTrackError)
    async def docutrack_exception_handler(request: Request, exc: DocuTrackError):
        logger.warning("Unhandled %s on %s: %s", type(exc).__name__, request.url.path, exc.message)
        return JSONResponse(
            status_code=400,
            content={"detail": exc.message},
        )

    # Register routers
    app.include_router(auth_router, prefix="/api")
    app.include_router(admin_router, prefix="/api")
    app.include_router(requests_router, prefix="/api")
    app.include_router(tracking_router, prefix="/api")

    @app.get("/")
    async def root():
        return {
            "name": settings.APP_NAME,
            "version": "0.1.0",
            "docs": "/docs",
        }

    @app.get("/api/health")
    async def health():
        """Quick health check endpoint."""
        return {"status": "ok", "activeSessions": len(app.state.container.sessions.active_sessions())}

    return app

