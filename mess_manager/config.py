from datetime import time
from decimal import Decimal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be configured via .env file or environment variables.
    """

    # Database
    DATABASE_URL: str
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20

    # JWT Authentication
    SECRET_KEY: str

    # Attendance QR signing key (falls back to SECRET_KEY)
    QR_SECRET_KEY: str = ""

    # Mess-local clock
    TIMEZONE: str = "UTC"
    DEFAULT_MEAL_CUTOFF: time = time(10, 0)

    # Attendance token lifetimes
    MEAL_TOKEN_TTL_HOURS: int = 24
    ACCESS_TOKEN_TTL_HOURS: int = 168
    GUEST_TOKEN_TTL_HOURS: int = 4
    ACCESS_TOKEN_MAX_USAGE: int = 100

    # Allowed gap between declared and itemised bazar totals
    COST_TOLERANCE: Decimal = Decimal("0.01")

    # Application
    APP_NAME: str = "Mess Manager API"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # CORS
    CORS_ORIGINS: str = ""
    CORS_ALLOW_CREDENTIALS: bool = True

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
    )

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS from comma-separated string"""
        if not self.CORS_ORIGINS:
            return []
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def qr_secret(self) -> str:
        return self.QR_SECRET_KEY or self.SECRET_KEY


# Global settings instance
settings = Settings()
