from decimal import Decimal
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "BizDesk API"
    app_env: str = "local"
    app_debug: bool = True
    api_port: int = 8000
    database_url: str = "sqlite+pysqlite:///./bizdesk.db"
    redis_url: str = "redis://redis:6379/0"

    jwt_secret: str = "replace-me"
    jwt_algorithm: str = "HS256"
    session_duration_hours: int = 24
    registration_allowed_domains: list[str] = []
    bootstrap_admin_email: str | None = None
    bootstrap_admin_password: str | None = None
    seed_default_categories: bool = False

    default_exchange_rate: Decimal = Decimal("162")
    gct_rate_percent: Decimal = Decimal("15")
    marketplace_surcharge_percent: Decimal = Decimal("7")
    marketplace_tier_threshold: Decimal = Decimal("100")
    marketplace_low_tier_markup_percent: Decimal = Decimal("80")
    marketplace_high_tier_markup_percent: Decimal = Decimal("120")
    pricing_rounding_mode: str = "none"
    marketplace_lookup_url: str | None = None
    marketplace_lookup_timeout_seconds: float = 10.0

    notifications_auto_dispatch: bool = True
    notification_retention_days: int = 30

    metrics_enabled: bool = False
    otel_enabled: bool = False

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=False)


@lru_cache
def get_settings() -> Settings:
    return Settings()
