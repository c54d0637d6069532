"""Database setup utilities for the daily reports web app."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    MetaData,
    String,
    Table,
    create_engine,
)
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session

from .errors import StorageUnavailableError

logger = logging.getLogger(__name__)

metadata = MetaData()

daily_reports = Table(
    "daily_reports",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("date", String(10), nullable=False, unique=True, index=True),
    Column("services", JSON, nullable=False),
    Column("expenses", JSON, nullable=False),
    Column("total_services", String(32), nullable=False),
    Column("total_expenses", String(32), nullable=False),
    Column("net_profit", String(32), nullable=False),
    Column("online_payment", String(32), nullable=True),
    Column("cash_payment", String(32), nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
)

users = Table(
    "users",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("username", String(30), nullable=False, unique=True, index=True),
    Column("password_hash", String(255), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
)


def _connect_args(backend: str, timeout: float) -> Dict[str, Any]:
    """Return driver-specific arguments bounding connection attempts."""

    if backend == "sqlite":
        return {"timeout": timeout, "check_same_thread": False}
    if backend in {"postgresql", "mysql", "mariadb"}:
        return {"connect_timeout": max(1, int(timeout))}
    return {}


def create_db_engine(database_url: str, timeout: float = 10.0) -> Engine:
    """Return a SQLAlchemy engine for the provided URL.

    ``timeout`` bounds both the driver connect attempt and, for pooled
    backends, how long a request waits for a free connection.
    """

    engine_kwargs: Dict[str, Any] = {"future": True, "pool_pre_ping": True}
    backend = make_url(database_url).get_backend_name()
    engine_kwargs["connect_args"] = _connect_args(backend, timeout)
    if backend != "sqlite":
        engine_kwargs["pool_timeout"] = timeout
    return create_engine(database_url, **engine_kwargs)


def init_schema(engine: Engine) -> None:
    """Create database tables and the unique ``date`` index if missing."""

    try:
        metadata.create_all(engine)
    except (OperationalError, InterfaceError, PoolTimeoutError) as exc:
        logger.error("Database unavailable while creating schema: %s", exc)
        raise StorageUnavailableError() from exc
    logger.info("Report schema ready")


@contextmanager
def session_scope(engine: Engine) -> Iterator[Session]:
    """Context manager that yields a SQLAlchemy :class:`Session`.

    Commits on success and rolls back on error. Connectivity failures and
    pool timeouts are re-raised as :class:`StorageUnavailableError` so callers
    can tell an outage apart from an empty result.
    """

    try:
        with Session(engine, future=True) as session:
            try:
                yield session
                session.commit()
            except Exception:
                session.rollback()
                raise
    except (OperationalError, InterfaceError, PoolTimeoutError) as exc:
        logger.error("Database operation failed: %s", exc)
        raise StorageUnavailableError() from exc
