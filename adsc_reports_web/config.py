"""Configuration helpers for the daily reports web application."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from secrets import token_urlsafe

TRUE_VALUES = {"1", "true", "t", "yes", "y", "on"}
FALSE_VALUES = {"0", "false", "f", "no", "n", "off"}


def env_flag(name: str, default: bool) -> bool:
    """Read a boolean environment variable.

    Unset variables and values outside :data:`TRUE_VALUES` and
    :data:`FALSE_VALUES` yield ``default``.
    """

    raw = os.getenv(name)
    if raw is None:
        return default
    normalized = raw.strip().lower()
    if normalized in TRUE_VALUES:
        return True
    if normalized in FALSE_VALUES:
        return False
    return default


def _resolve_secret_key() -> str:
    """Return the session signing key, generating a one-time key when unset.

    ``REPORTS_SECRET_KEY`` takes precedence over ``SESSION_SECRET``. A
    generated key means sessions do not survive a restart, so a warning is
    logged.
    """

    configured = os.getenv("REPORTS_SECRET_KEY") or os.getenv("SESSION_SECRET")
    if configured:
        return configured

    logging.getLogger("adsc_reports.config").warning(
        "SESSION_SECRET is not set; generated a one-time key. Sessions will "
        "not persist across restarts."
    )
    return token_urlsafe(32)


@dataclass(slots=True)
class AppConfig:
    """Settings loaded from environment variables."""

    database_url: str
    secret_key: str
    db_timeout: float = 10.0
    cache_type: str = "SimpleCache"
    cache_redis_url: str | None = None
    ratelimit_storage_uri: str = "memory://"
    login_rate_limit: str = "5 per 15 minutes"
    lockout_max_attempts: int = 5
    lockout_window_seconds: int = 15 * 60
    lockout_duration_seconds: int = 30 * 60
    admin_username: str = "admin"
    admin_password: str = "admin123"
    session_cookie_secure: bool = False
    csrf_enabled: bool = True


def load_config() -> AppConfig:
    """Create an :class:`AppConfig` instance from environment variables."""

    database = os.getenv(
        "REPORTS_DATABASE", "sqlite:///" + str(Path("instance/reports.db").resolve())
    )
    if database.startswith("sqlite:///"):
        Path(database[len("sqlite:///"):]).parent.mkdir(parents=True, exist_ok=True)
    return AppConfig(
        database_url=database,
        secret_key=_resolve_secret_key(),
        db_timeout=float(os.getenv("REPORTS_DB_TIMEOUT", "10")),
        cache_type=os.getenv("CACHE_TYPE", "SimpleCache"),
        cache_redis_url=os.getenv("CACHE_REDIS_URL") or None,
        ratelimit_storage_uri=os.getenv("RATELIMIT_STORAGE_URI", "memory://"),
        login_rate_limit=os.getenv("AUTH_LOGIN_RATE_LIMIT", "5 per 15 minutes"),
        lockout_max_attempts=int(os.getenv("AUTH_LOCKOUT_MAX_ATTEMPTS", "5")),
        lockout_window_seconds=int(os.getenv("AUTH_LOCKOUT_WINDOW_SECONDS", "900")),
        lockout_duration_seconds=int(
            os.getenv("AUTH_LOCKOUT_DURATION_SECONDS", "1800")
        ),
        admin_username=os.getenv("ADMIN_USERNAME", "admin"),
        admin_password=os.getenv("ADMIN_PASSWORD", "admin123"),
        session_cookie_secure=env_flag("SESSION_COOKIE_SECURE", False),
        csrf_enabled=env_flag("WTF_CSRF_ENABLED", True),
    )
