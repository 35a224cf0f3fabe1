"""Dependency providers and settings management."""

from functools import lru_cache

from fastapi import HTTPException, Request, status
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment or .env."""

    BACKEND_CORS_ORIGINS: str = "http://localhost:3000"

    # Store API
    STORE_API_VERSION: str = "2023-10"
    STORE_API_PAGE_SIZE: int = 250
    STORE_API_MAX_PAGES: int = 10  # Hard ceiling per fetch; larger catalogs are truncated
    STORE_API_TIMEOUT_SECONDS: float = 30.0
    STORE_API_MAX_RETRIES: int = 3
    STORE_API_RETRY_BACKOFF_SECONDS: float = 1.0

    # Scheduler (standard 5-field crontab expressions)
    SCHEDULER_ENABLED: bool = False
    QUICK_SYNC_CRON: str = "*/15 * * * *"
    FULL_SYNC_CRON: str = "0 * * * *"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


@lru_cache()
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()  # type: ignore[call-arg]


def get_orchestrator():
    """Return a TenantSyncOrchestrator bound to the default session factory."""
    from .services.tenant_sync import TenantSyncOrchestrator
    return TenantSyncOrchestrator()


def get_scheduler(request: Request):
    """Resolve the SyncScheduler owned by the running application.

    The scheduler is created once in `create_app()` and stored on
    `app.state`; it is never a module-level singleton.
    """
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Sync scheduler is not configured",
        )
    return scheduler
