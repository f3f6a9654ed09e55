"""Dependency providers and settings management.

Service objects (LoyalteezClient, WebhookRouter, TaskSupervisor) are built
once in `create_app()` and stored on `app.state`. Routes reach them through
the providers below, which keeps them overridable in tests via
`app.dependency_overrides`.
"""

from functools import lru_cache
from typing import Optional

from fastapi import Request
from pydantic_settings import BaseSettings, SettingsConfigDict

from .services.loyalteez_client import (
    DEFAULT_API_URL,
    DEFAULT_BRAND_ID,
    EVENT_TIMEOUT_SECONDS,
    HEALTH_TIMEOUT_SECONDS,
    LoyalteezClient,
)
from .services.task_supervisor import TaskSupervisor
from .services.webhook_router import WebhookRouter


class Settings(BaseSettings):
    """Application settings loaded from environment or .env."""

    ENVIRONMENT: str = "development"

    # Shopify
    SHOPIFY_WEBHOOK_SECRET: Optional[str] = None

    # Loyalteez
    LOYALTEEZ_API_URL: str = DEFAULT_API_URL
    LOYALTEEZ_BRAND_ID: str = DEFAULT_BRAND_ID
    EVENT_TIMEOUT_SECONDS: float = EVENT_TIMEOUT_SECONDS
    HEALTH_TIMEOUT_SECONDS: float = HEALTH_TIMEOUT_SECONDS
    # Edge deployments report static health instead of probing the rewards API
    REMOTE_HEALTH_CHECK: bool = True

    # Error tracking
    SENTRY_DSN: Optional[str] = None
    RELEASE_VERSION: Optional[str] = None

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 3000

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    def validate_required(self) -> None:
        """Raise RuntimeError if production is missing mandatory secrets."""
        if self.is_production and not self.SHOPIFY_WEBHOOK_SECRET:
            raise RuntimeError("Missing required environment variable: SHOPIFY_WEBHOOK_SECRET")


@lru_cache()
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()  # type: ignore[call-arg]


def get_app_settings(request: Request) -> Settings:
    """Settings the running app was built with."""
    return request.app.state.settings


def get_webhook_secret(request: Request) -> str:
    return request.app.state.settings.SHOPIFY_WEBHOOK_SECRET or ""


def get_loyalteez_client(request: Request) -> LoyalteezClient:
    return request.app.state.loyalteez_client


def get_webhook_router(request: Request) -> WebhookRouter:
    return request.app.state.webhook_router


def get_supervisor(request: Request) -> TaskSupervisor:
    return request.app.state.task_supervisor
