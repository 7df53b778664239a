"""
pr_desk.settings

Central configuration model (Pydantic Settings).

Responsibilities:
- Provide strongly-typed, env-driven settings for all layers.
- Hide secrets from repr/logging (session secret, provider API keys).
- Offer a cached settings instance for dependency injection.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Env-driven configuration (prefix `PR_DESK_`).
    Defaults are safe for local dev; production must override the secrets.
    """

    model_config = SettingsConfigDict(env_prefix="PR_DESK_", case_sensitive=False)

    # `dev`/`test` echo error detail to clients and expose the dev sign-in route.
    env: Literal["dev", "test", "prod"] = "dev"
    service_name: str = "pr-desk"
    log_level: str = "INFO"

    api_host: str = "0.0.0.0"
    api_port: int = 8080

    # Session tokens
    jwt_alg: str = "HS256"
    jwt_issuer: str = "pr-desk"
    jwt_audience: str = "pr-desk-web"
    jwt_secret: str = Field(default="dev-secret-change-me", repr=False)
    session_cookie_name: str = "pr_desk_session"
    session_max_age_seconds: int = 7 * 24 * 60 * 60
    session_update_age_seconds: int = 24 * 60 * 60
    allowed_email_domains: list[str] = Field(
        default_factory=lambda: ["studiohawk.com.au", "studiohawk.com"]
    )

    # Persistence
    database_url: str = "sqlite+aiosqlite:///./pr_desk.db"

    # Rate limiting (sliding window, per process)
    rate_limit_window_seconds: int = 15 * 60
    ai_ip_limit: int = 10
    ai_user_limit: int = 15
    read_ip_limit: int = 100
    read_user_limit: int = 50
    write_ip_limit: int = 50
    write_user_limit: int = 30
    rate_limit_sweep_probability: float = Field(default=0.01, ge=0.0, le=1.0)

    # Request guard
    max_request_bytes: int = 10 * 1024 * 1024

    # Upstream providers
    openai_api_key: str | None = Field(default=None, repr=False)
    openai_base_url: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-4o-mini"
    gnews_api_key: str | None = Field(default=None, repr=False)
    gnews_base_url: str = "https://gnews.io/api/v4"
    outbound_timeout_seconds: float = 30.0

    @property
    def is_production(self) -> bool:
        return self.env == "prod"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    # Cache avoids re-parsing env vars for each request dependency.
    return Settings()


# --- Module Notes -----------------------------------------------------------
# Everything downstream reads settings from `request.app.state.settings` (set by
# the app factory) so tests can run several apps with different settings.
