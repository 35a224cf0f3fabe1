"""FastAPI application entrypoint.

Configures CORS, includes routers, owns the sync scheduler lifecycle and
exposes a healthcheck endpoint.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

from .deps import get_settings
from .routers import ingestion as ingestion_router
from .services.sync_scheduler import SyncScheduler
from .services.tenant_sync import TenantSyncOrchestrator
from .telemetry import init_sentry
from . import schemas

# Import models so Alembic can discover metadata
from . import models  # noqa: F401


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    The SyncScheduler is created here and stored on `app.state`; it only
    starts scheduling when SCHEDULER_ENABLED is set, and is always stopped on
    shutdown.
    """
    settings = get_settings()
    init_sentry()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.SCHEDULER_ENABLED:
            await app.state.scheduler.start()
        else:
            logger.info("[STARTUP] SCHEDULER_ENABLED is false - scheduled syncs disabled")
        try:
            yield
        finally:
            await app.state.scheduler.stop()

    app = FastAPI(
        title="storesync API",
        version="0.1.0",
        description="Multi-tenant storefront data synchronization engine",
        lifespan=lifespan,
    )

    app.state.scheduler = SyncScheduler(TenantSyncOrchestrator(), settings=settings)

    # BACKEND_CORS_ORIGINS can be a comma-separated list: "https://app.example.com,http://localhost:3000"
    allowed_origins = [origin.strip() for origin in settings.BACKEND_CORS_ORIGINS.split(",") if origin.strip()]
    logger.info(f"[CORS] Allowed origins: {allowed_origins}")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(ingestion_router.router)

    @app.get(
        "/health",
        response_model=schemas.HealthResponse,
        tags=["Health"],
        summary="Health check",
    )
    def health():
        return schemas.HealthResponse(status="ok")

    return app


app = create_app()
