import logging
import os
import re
from functools import lru_cache
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

# Fallbacks used when the environment does not provide a value. They exist so a
# fresh checkout boots; /health reports them as "using_default".
DEFAULT_JWT_SECRET = "newsdesk-jwt-secret-change-in-production"
DEFAULT_ADMIN_SECRET = "newsdesk-admin-secret-change-in-production"
DEFAULT_ADMIN_SETUP_KEY = "newsdesk-admin-setup"

_INSECURE_DEFAULTS = {
    "jwt_secret": DEFAULT_JWT_SECRET,
    "admin_secret": DEFAULT_ADMIN_SECRET,
    "admin_setup_key": DEFAULT_ADMIN_SETUP_KEY,
}


def _csv_env(name: str, default: str = "") -> List[str]:
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


class Settings(BaseModel):
    """Runtime configuration, built from environment variables by load_settings()."""

    mongodb_uri: Optional[str] = None
    mongodb_db: str = "newsdesk"
    db_max_pool_size: int = Field(3, ge=1)
    db_server_selection_timeout_ms: int = 4000
    db_connect_timeout_ms: int = 4000
    db_socket_timeout_ms: int = 15000
    db_connect_retries: int = Field(2, ge=1)
    db_retry_delay_seconds: float = 1.0
    db_retry_max_delay_seconds: float = 10.0

    jwt_secret: str = DEFAULT_JWT_SECRET
    jwt_algorithm: str = "HS256"
    jwt_expires_minutes: int = 10080  # 7 days

    admin_secret: str = DEFAULT_ADMIN_SECRET
    admin_setup_key: str = DEFAULT_ADMIN_SETUP_KEY
    admin_email_pattern: str = "admin@"
    admin_email_allowlist: List[str] = Field(default_factory=list)

    cors_allow_origins: List[str] = Field(default_factory=lambda: ["*"])
    log_level: str = "INFO"

    @field_validator("admin_email_pattern")
    @classmethod
    def _check_pattern(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as e:
            raise ValueError(f"ADMIN_EMAIL_PATTERN is not a valid regular expression: {e}") from e
        return value

    def uses_default(self, field_name: str) -> bool:
        """True when a secret still carries its built-in fallback value."""
        return getattr(self, field_name) == _INSECURE_DEFAULTS.get(field_name)

    def insecure_fields(self) -> List[str]:
        return [name for name in _INSECURE_DEFAULTS if self.uses_default(name)]


# PUBLIC_INTERFACE
def load_settings() -> Settings:
    """Build Settings from the process environment."""
    return Settings(
        mongodb_uri=os.getenv("MONGODB_URI") or None,
        mongodb_db=os.getenv("MONGODB_DB", "newsdesk"),
        db_max_pool_size=int(os.getenv("DB_MAX_POOL_SIZE", "3")),
        db_server_selection_timeout_ms=int(os.getenv("DB_SERVER_SELECTION_TIMEOUT_MS", "4000")),
        db_connect_timeout_ms=int(os.getenv("DB_CONNECT_TIMEOUT_MS", "4000")),
        db_socket_timeout_ms=int(os.getenv("DB_SOCKET_TIMEOUT_MS", "15000")),
        db_connect_retries=int(os.getenv("DB_CONNECT_RETRIES", "2")),
        db_retry_delay_seconds=float(os.getenv("DB_RETRY_DELAY_SECONDS", "1.0")),
        db_retry_max_delay_seconds=float(os.getenv("DB_RETRY_MAX_DELAY_SECONDS", "10")),
        jwt_secret=os.getenv("JWT_SECRET") or DEFAULT_JWT_SECRET,
        jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
        jwt_expires_minutes=int(os.getenv("JWT_EXPIRES_MINUTES", "10080")),
        admin_secret=os.getenv("ADMIN_SECRET") or DEFAULT_ADMIN_SECRET,
        admin_setup_key=os.getenv("ADMIN_SETUP_KEY") or DEFAULT_ADMIN_SETUP_KEY,
        admin_email_pattern=os.getenv("ADMIN_EMAIL_PATTERN", "admin@"),
        admin_email_allowlist=[e.lower() for e in _csv_env("ADMIN_EMAIL_ALLOWLIST")],
        cors_allow_origins=_csv_env("CORS_ALLOW_ORIGINS", "*") or ["*"],
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )


# PUBLIC_INTERFACE
@lru_cache()
def get_settings() -> Settings:
    """Process-wide settings; FastAPI dependency."""
    return load_settings()


# PUBLIC_INTERFACE
def setup_logging(level: str = "INFO") -> None:
    """Configure root logging once for the service."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    )


def warn_insecure_defaults(settings: Settings) -> None:
    for name in settings.insecure_fields():
        logger.warning("%s is not set; using the built-in default. Set it before deploying.", name.upper())
