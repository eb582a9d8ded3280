"""
Environment-driven settings for the CKD follow-up backend.

Values are read once from the process environment (``.env`` is loaded via
python-dotenv) and handed to the service container at startup.
"""

import os
from functools import lru_cache
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


@dataclass
class Settings:
    """Runtime configuration shared by the service container."""

    database_url: Optional[str] = None
    redis_url: Optional[str] = None
    session_secret: str = "dev-secret-change-me"
    session_issuer: Optional[str] = None
    debug: bool = False

    cache_default_ttl_seconds: int = 300
    rate_limit_enabled: bool = True
    rate_limit_requests: int = 50
    rate_limit_window_seconds: int = 60

    rule_session_ttl_seconds: int = 3600
    rule_session_max_entries: int = 1000

    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_use_tls: bool = True
    smtp_from_email: Optional[str] = None
    smtp_from_name: str = "NephroCare"
    support_email: Optional[str] = None

    app_base_url: str = "http://localhost:3000"
    cors_origins: List[str] = field(default_factory=lambda: ["http://localhost:3000"])
    host: str = "0.0.0.0"
    port: int = 8000

    @classmethod
    def from_env(cls) -> "Settings":
        smtp_user = os.getenv("SMTP_USER", "")
        return cls(
            database_url=os.getenv("DATABASE_URL") or None,
            redis_url=os.getenv("REDIS_URL") or None,
            session_secret=os.getenv("SESSION_SECRET", "dev-secret-change-me"),
            session_issuer=os.getenv("SESSION_ISSUER") or None,
            debug=_env_bool("DEBUG"),
            cache_default_ttl_seconds=_env_int("CACHE_DEFAULT_TTL_SECONDS", 300),
            rate_limit_enabled=_env_bool("RATE_LIMIT_ENABLED", "true"),
            rate_limit_requests=_env_int("RATE_LIMIT_REQUESTS", 50),
            rate_limit_window_seconds=_env_int("RATE_LIMIT_WINDOW_SECONDS", 60),
            rule_session_ttl_seconds=_env_int("RULE_SESSION_TTL_SECONDS", 3600),
            rule_session_max_entries=_env_int("RULE_SESSION_MAX_ENTRIES", 1000),
            smtp_host=os.getenv("SMTP_HOST", "smtp.gmail.com"),
            smtp_port=_env_int("SMTP_PORT", 587),
            smtp_user=smtp_user,
            smtp_password=os.getenv("SMTP_PASSWORD", ""),
            smtp_use_tls=_env_bool("SMTP_USE_TLS", "true"),
            smtp_from_email=os.getenv("SMTP_FROM_EMAIL", smtp_user) or None,
            smtp_from_name=os.getenv("SMTP_FROM_NAME", "NephroCare"),
            support_email=os.getenv("SUPPORT_EMAIL") or None,
            app_base_url=os.getenv("APP_BASE_URL", "http://localhost:3000").rstrip("/"),
            cors_origins=os.getenv("CORS_ORIGINS", "http://localhost:3000").split(","),
            host=os.getenv("HOST", "0.0.0.0"),
            port=_env_int("PORT", 8000),
        )

    def validate(self) -> None:
        """Reject settings the services cannot run with."""
        if self.rate_limit_requests <= 0:
            raise ValueError("RATE_LIMIT_REQUESTS must be a positive integer")
        if self.rate_limit_window_seconds <= 0:
            raise ValueError("RATE_LIMIT_WINDOW_SECONDS must be a positive integer")
        if self.cache_default_ttl_seconds <= 0:
            raise ValueError("CACHE_DEFAULT_TTL_SECONDS must be a positive integer")


@lru_cache()
def get_settings() -> Settings:
    return Settings.from_env()
