import logging
from typing import List, Optional

from pydantic import ConfigDict
from pydantic_settings import BaseSettings

# India Standard Time, no DST
IST_OFFSET_MINUTES = 330


class Settings(BaseSettings):
    ENV: str = "development"
    CONFIG_STRICT: bool = False

    # Storage
    DATABASE_URL: Optional[str] = None
    TEST_DATABASE_URL: Optional[str] = None
    DB_POOL_TIMEOUT: int = 30

    # Bearer tokens are minted by the OAuth exchange service; we only verify them
    JWT_SECRET: Optional[str] = None
    JWT_ALGORITHM: str = "HS256"
    ALLOW_HEADER_AUTH: bool = False  # X-User-Id, dev/test only

    # Comma-separated admin allowlists
    ADMIN_USER_IDS: str = ""
    ADMIN_EMAILS: str = ""

    # Day bucketing offset
    BUCKET_TZ_OFFSET_MINUTES: int = IST_OFFSET_MINUTES

    STREAK_WRITE_RETRIES: int = 3

    CORS_ORIGINS: str = "http://localhost:5000"

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @staticmethod
    def split_csv(value: Optional[str]) -> List[str]:
        return [part.strip() for part in (value or "").split(",") if part.strip()]


settings = Settings()

REQUIRED_KEYS = ("DATABASE_URL", "JWT_SECRET")


def validate_config(strict: Optional[bool] = None, settings_obj: Optional[Settings] = None, logger: Optional[logging.Logger] = None) -> bool:
    """Report missing configuration.

    Strict mode raises RuntimeError, otherwise it only warns. Only key names
    are logged, never values.
    """
    cfg = settings_obj or settings
    log = logger or logging.getLogger("pomotrack")
    if strict is None:
        strict = bool(getattr(cfg, "CONFIG_STRICT", False))

    missing = [key for key in REQUIRED_KEYS if not getattr(cfg, key, None)]
    if missing:
        message = f"Missing required configuration: {', '.join(missing)}"
        if strict:
            raise RuntimeError(message)
        log.warning(message)

    if not (Settings.split_csv(cfg.ADMIN_USER_IDS) or Settings.split_csv(cfg.ADMIN_EMAILS)):
        log.warning("No admin allowlist configured; admin access relies on role claims only")

    return True
