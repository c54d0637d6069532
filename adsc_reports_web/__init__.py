"""ADSC daily reports Flask application factory."""

from __future__ import annotations

from datetime import timedelta
from typing import Any

import click
from flask import Flask, current_app, g, jsonify
from flask_caching import Cache
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_login import LoginManager
from flask_wtf.csrf import CSRFProtect

from .auth_utils import SessionUser, ensure_admin_user
from .config import AppConfig, load_config
from .database import create_db_engine, init_schema
from .errors import StorageUnavailableError
from .lockout import CacheLockoutStore, LoginLockout
from .repositories import ReportsRepository, UsersRepository
from .services import ReportService, SessionAuthGate

login_manager = LoginManager()
csrf = CSRFProtect()
cache = Cache()
limiter = Limiter(key_func=get_remote_address)


@login_manager.user_loader
def load_user(user_id: str) -> SessionUser | None:
    stored = get_users_repository().get_by_id(user_id)
    return SessionUser.from_stored(stored) if stored else None


@login_manager.unauthorized_handler
def unauthorized() -> Any:
    return jsonify({"error": "Unauthorized"}), 401


def create_app(config: AppConfig | None = None) -> Flask:
    """Build and configure the daily reports Flask application instance.

    Args:
        config: Optional :class:`AppConfig` override. When ``None`` the helper
            loads configuration via :func:`load_config`, which honours the
            environment variables documented in ``DESIGN.md``.

    Returns:
        Flask: Fully initialised application. The SQLAlchemy engine is stored
        on ``app.config['DB_ENGINE']`` for the repositories and released by
        :func:`dispose_engine`.

    External Dependencies:
        * Uses :func:`create_db_engine` and :func:`init_schema` to prepare the
          database schema on startup. When the database cannot be reached the
          app still starts and requests answer ``503`` until it recovers.
        * Creates the bootstrap admin account via :func:`ensure_admin_user`.
    """

    app = Flask(__name__, instance_relative_config=True)
    app_config = config or load_config()
    app.config.update(
        SECRET_KEY=app_config.secret_key,
        SESSION_COOKIE_NAME="sessionId",
        SESSION_COOKIE_HTTPONLY=True,
        SESSION_COOKIE_SAMESITE="Strict",
        SESSION_COOKIE_SECURE=app_config.session_cookie_secure,
        PERMANENT_SESSION_LIFETIME=timedelta(hours=24),
        WTF_CSRF_ENABLED=app_config.csrf_enabled,
        CACHE_TYPE=app_config.cache_type,
        CACHE_REDIS_URL=app_config.cache_redis_url,
        RATELIMIT_STORAGE_URI=app_config.ratelimit_storage_uri,
        RATELIMIT_HEADERS_ENABLED=True,
        AUTH_LOGIN_RATE_LIMIT=app_config.login_rate_limit,
        REPORTS_CONFIG=app_config,
    )

    login_manager.init_app(app)
    csrf.init_app(app)
    cache.init_app(app)
    limiter.init_app(app)
    app.extensions["login_lockout"] = CacheLockoutStore(
        cache,
        max_attempts=app_config.lockout_max_attempts,
        window_seconds=app_config.lockout_window_seconds,
        lock_seconds=app_config.lockout_duration_seconds,
    )

    engine = create_db_engine(app_config.database_url, app_config.db_timeout)
    app.config["DB_ENGINE"] = engine
    try:
        init_schema(engine)
        ensure_admin_user(
            UsersRepository(engine),
            app_config.admin_username,
            app_config.admin_password,
        )
    except StorageUnavailableError:
        app.logger.warning(
            "Database connection failed - app will run with limited features"
        )

    from .blueprints.auth import auth_bp
    from .blueprints.reports import reports_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(reports_bp)

    @app.teardown_appcontext
    def teardown(_: Any) -> None:
        g.pop("reports_repo", None)
        g.pop("users_repo", None)
        g.pop("report_service", None)

    @app.cli.command("init-db")
    def init_db_command() -> None:
        """Initialize the database tables."""

        init_schema(engine)
        click.echo("Database initialized.")

    return app


def dispose_engine(app: Flask) -> None:
    """Release pooled database connections held by ``app``."""

    engine = app.config.pop("DB_ENGINE", None)
    if engine is not None:
        engine.dispose()


def get_repository() -> ReportsRepository:
    """Return a report repository cached on :mod:`flask.g` for this request."""

    if "reports_repo" not in g:
        g.reports_repo = ReportsRepository(current_app.config["DB_ENGINE"])
    return g.reports_repo


def get_users_repository() -> UsersRepository:
    """Return a user repository cached on :mod:`flask.g` for this request."""

    if "users_repo" not in g:
        g.users_repo = UsersRepository(current_app.config["DB_ENGINE"])
    return g.users_repo


def get_report_service() -> ReportService:
    """Return the report service wired to the session authentication gate."""

    if "report_service" not in g:
        g.report_service = ReportService(get_repository(), SessionAuthGate())
    return g.report_service


def get_lockout() -> LoginLockout:
    """Return the login lockout store configured for the active app."""

    return current_app.extensions["login_lockout"]


__all__ = [
    "create_app",
    "dispose_engine",
    "AppConfig",
    "get_lockout",
    "get_report_service",
    "get_repository",
    "get_users_repository",
]
