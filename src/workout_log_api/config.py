"""Configuration settings for the workout log API."""
import logging
import os
from typing import List, Literal


EnvironmentType = Literal["development", "staging", "production"]

logger = logging.getLogger(__name__)

DEFAULT_PORT = 3001
DEFAULT_INITDATA_MAX_AGE_SECONDS = 24 * 60 * 60


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r, using %s", name, raw, default)
        return default


class Settings:
    """Application settings."""

    # Environment
    ENVIRONMENT: EnvironmentType = "development"
    LOG_LEVEL: str = "INFO"

    # Store
    SUPABASE_URL: str | None = None
    SUPABASE_SERVICE_ROLE: str | None = None

    # Telegram
    BOT_TOKEN: str | None = None
    INITDATA_MAX_AGE_SECONDS: int = DEFAULT_INITDATA_MAX_AGE_SECONDS

    # HTTP
    PORT: int = DEFAULT_PORT
    CORS_ALLOW_ORIGINS: List[str] = ["*"]

    def __init__(self):
        # Environment
        env = os.getenv("ENVIRONMENT", "development").lower()
        if env in ("development", "staging", "production"):
            self.ENVIRONMENT = env  # type: ignore
        else:
            self.ENVIRONMENT = "development"
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

        # Store
        self.SUPABASE_URL = os.getenv("SUPABASE_URL")
        self.SUPABASE_SERVICE_ROLE = os.getenv("SUPABASE_SERVICE_ROLE") or os.getenv(
            "SUPABASE_SERVICE_ROLE_KEY"
        )

        # Telegram
        self.BOT_TOKEN = os.getenv("BOT_TOKEN")
        self.INITDATA_MAX_AGE_SECONDS = _int_env(
            "INITDATA_MAX_AGE_SECONDS", DEFAULT_INITDATA_MAX_AGE_SECONDS
        )

        # HTTP
        self.PORT = _int_env("PORT", DEFAULT_PORT)
        origins = [o.strip() for o in os.getenv("CORS_ALLOW_ORIGINS", "*").split(",") if o.strip()]
        self.CORS_ALLOW_ORIGINS = origins or ["*"]

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    def missing(self) -> List[str]:
        """Names of required variables that are not set."""
        missing = []
        if not self.SUPABASE_URL:
            missing.append("SUPABASE_URL")
        if not self.SUPABASE_SERVICE_ROLE:
            missing.append("SUPABASE_SERVICE_ROLE")
        if not self.BOT_TOKEN:
            missing.append("BOT_TOKEN")
        return missing
