from __future__ import annotations

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    environment: str = "dev"
    secret_key: str | None = Field(
        default=None, validation_alias=AliasChoices("SECRET_KEY", "JWT_SECRET")
    )

    database_url: str = "sqlite:///./doviz.db"

    currency_api_url: str = "https://v6.exchangerate-api.com/v6/"
    currency_api_key: str = ""
    currency_api_fallback_keys: list[str] = []
    http_timeout_seconds: float = 10.0

    # Currencies whose historical pair lookups are known to fail upstream.
    synthetic_only_currencies: list[str] = ["TRY"]
    default_currencies: list[str] = ["USD", "EUR", "GBP", "JPY", "CHF", "TRY"]

    init_admin_email: str | None = None
    init_admin_password: str | None = None

    access_token_exp_minutes: int = 60 * 24
    token_refresh_window_minutes: int = 60
    allow_unverified_token_recovery: bool = False

    @property
    def is_production(self) -> bool:
        return self.environment.lower() in {"prod", "production"}


settings = Settings()
