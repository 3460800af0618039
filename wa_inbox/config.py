from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Read once at process start; core components receive plain values.
    """

    # env_file is only used as fallback, env vars take precedence
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_ignore_empty=True,
    )

    # Database Configuration - required
    DATABASE_URL: str

    # Bounded wait (seconds) for a single store call
    DB_TIMEOUT_SECONDS: float = 5.0

    # Logging Configuration
    LOG_LEVEL: str = "INFO"

    # Business own address, used when a webhook carries no display_phone_number
    BUSINESS_PHONE_NUMBER: str = "+1234567890"

    # HTTP surface
    CORS_ORIGIN: str = "*"
    PORT: int = 5000

    # Default folder for the batch webhook processor
    WEBHOOK_DATA_DIR: str = "./webhook-data"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Uses lru_cache to avoid reading .env file on every request.
    """
    return Settings()


# Global settings instance
settings = get_settings()
