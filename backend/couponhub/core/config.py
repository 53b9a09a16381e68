from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables or a .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="COUPONHUB_",
        case_sensitive=False,
    )

    app_name: str = "couponhub"
    app_version: str = "0.1.0"
    environment: str = "local"

    database_url: str = "sqlite+aiosqlite:///./couponhub.db"
    log_json: bool = False

    cors_origins: list[str] = ["http://localhost:5173"]
    cors_allow_credentials: bool = True
    cors_allow_methods: list[str] = ["*"]
    cors_allow_headers: list[str] = ["*"]

    # Max coupons per site, keyed by the owner's subscription plan.
    coupon_plan_limits: dict[str, int] = {"free": 3, "service": 10, "business": 50}
    coupon_default_plan: str = "free"

    apply_max_attempts: int = 5
    money_rounding: Literal["half_up", "half_even"] = "half_up"


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
