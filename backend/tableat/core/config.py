"""TablEat settings: document store backend, WhatsApp gateway, billing and API limits.

Read from the environment (or `.env`) once; import `settings` instead of
calling os.getenv() in services.
"""

from functools import lru_cache
from typing import List, Literal, Optional
from zoneinfo import ZoneInfo

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore extra env vars
    )

    # ==========================================================================
    # Document store
    # ==========================================================================
    store_backend: Literal["sql", "firestore"] = "sql"

    # Used by the sql backend - relative path for Docker, override for local dev
    database_url: str = "sqlite:///./data/tableat.db"

    # Used by the firestore backend
    firebase_credentials_path: Optional[str] = None
    firebase_project_id: Optional[str] = None

    # Restaurant whose permission flags are back-filled by
    # POST /api/update-restaurant-permissions
    permissions_restaurant_id: str = "BY_THE_WAY"

    # Months added to the subscription window on signup and renewal
    subscription_months: int = 1

    # ==========================================================================
    # WhatsApp (Ultramsg-compatible gateway)
    # ==========================================================================
    whatsapp_base_url: str = "https://api.ultramsg.com"
    whatsapp_instance_id: str = ""
    whatsapp_api_key: str = ""
    whatsapp_timeout: float = 15.0
    default_country_code: str = "+91"

    # ==========================================================================
    # Billing
    # ==========================================================================
    brand_name: str = "TablEat"
    currency_symbol: str = "₹"

    # CORS - comma-separated origins or "*" for development only
    cors_origins: str = "http://localhost:3000,http://localhost:8000"

    # Timezone
    timezone: str = "Asia/Kolkata"

    # Server
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # API
    api_v1_prefix: str = "/api/v1"

    # Rate limiting
    rate_limit_enabled: bool = True
    rate_limit_requests: int = 100  # requests per window
    rate_limit_window: int = 60  # window in seconds

    @field_validator("default_country_code")
    @classmethod
    def validate_country_code(cls, v: str) -> str:
        if not v.startswith("+") or not v[1:].isdigit():
            raise ValueError("DEFAULT_COUNTRY_CODE must look like '+91'")
        return v

    @field_validator("subscription_months")
    @classmethod
    def validate_subscription_months(cls, v: int) -> int:
        if v < 1:
            raise ValueError("SUBSCRIPTION_MONTHS must be at least 1")
        return v

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins into a list, filtering localhost in production."""
        if self.cors_origins == "*":
            return ["*"]

        origins = [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

        if not self.debug:
            localhost_patterns = ["localhost", "127.0.0.1", "0.0.0.0"]
            origins = [o for o in origins if not any(p in o for p in localhost_patterns)]

        return origins

    @property
    def tzinfo(self) -> ZoneInfo:
        """Zone used for business days (daily order numbers, bill dates)."""
        return ZoneInfo(self.timezone)

    @property
    def whatsapp_configured(self) -> bool:
        return bool(self.whatsapp_instance_id and self.whatsapp_api_key)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
