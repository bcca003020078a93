from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = "PTO Bot"
    app_version: str = "0.1.0"
    debug: bool = False
    environment: Literal["development", "staging", "production"] = "development"
    log_level: str = "INFO"

    # Slack
    slack_bot_token: str = ""
    slack_signing_secret: str = ""
    default_manager_id: str = ""
    operator_channel_id: str = ""
    event_dedup_ttl_seconds: int = 600

    # Date extraction (OpenRouter chat completions)
    openrouter_api_key: str = ""
    openrouter_model: str = "openai/gpt-3.5-turbo"
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    extractor_timeout_seconds: float = 10.0

    # PTO policy
    max_pto_span_days: int = 30
    pto_annual_allowance: int = 25
    enforce_balance_on_submit: bool = True

    # Storage
    store_backend: Literal["memory", "database", "sheets"] = "memory"
    database_url: str = "postgresql+asyncpg://pto_bot:pto_bot@db:5432/pto_bot"
    gcp_service_account_json: str = ""
    spreadsheet_id: str = ""
    requests_worksheet: str = "PTO_Requests"
    balances_worksheet: str = "Balances"


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return cached settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
