# babybites/config/settings.py
"""
Application configuration using pydantic-settings (pydantic v2 style).

This centralizes environment-driven configuration. Prefer reading values
from environment variables; do not rely on os.getenv inline defaults which
can silently hide missing configuration.
"""
from __future__ import annotations

import logging
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    Application configuration loaded from environment.

    Relevant environment variables:
      - SUPABASE_URL
      - SUPABASE_SERVICE_ROLE_KEY
      - OPENAI_API_KEY / OPENAI_MODEL / OPENAI_TIMEOUT_SECONDS
      - STRIPE_WEBHOOK_SECRET
      - FREE_PLANS_PER_WEEK
      - APP_URL
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Supabase
    supabase_url: Optional[str] = None
    supabase_service_role_key: Optional[str] = None

    # OpenAI
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o-mini"
    openai_timeout_seconds: float = 60.0
    openai_plan_temperature: float = 0.7
    openai_swap_temperature: float = 0.8
    openai_grocery_temperature: float = 0.3
    openai_quick_search_temperature: float = 0.7

    # Stripe
    stripe_webhook_secret: Optional[str] = None

    # Public base URL of the web app, used in share links
    app_url: str = ""

    # Quota (free tier)
    free_plans_per_week: int = 1
    quota_window_days: int = 7

    # Rate limits (fixed window, per account + operation)
    rate_limit_ai_requests: int = 10
    rate_limit_ai_window_seconds: int = 60
    rate_limit_api_requests: int = 100
    rate_limit_api_window_seconds: int = 60

    # Startup / health
    health_check_timeout: float = 5.0
    fail_on_db_startup: bool = False

    # --- validators / post-init checks ---
    @field_validator("supabase_url", "supabase_service_role_key")
    @classmethod
    def maybe_strip(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip()

    def model_post_init(self, __context) -> None:  # pydantic v2 hooks
        """
        Light-weight notice that runs after model is constructed.
        Uses logging (not print) so messages show up in server logs.
        """
        if not self.supabase_url or not self.supabase_service_role_key:
            logger.warning(
                "Supabase credentials are not configured. "
                "Set SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY to enable DB features."
            )
        if not self.openai_api_key:
            logger.info(
                "OPENAI_API_KEY not set. Meal plan generation will be unavailable."
            )
        if not self.stripe_webhook_secret:
            logger.info(
                "STRIPE_WEBHOOK_SECRET not set. Payment webhooks will be rejected."
            )


# single exporter
settings = Settings()
