"""Shared fixtures for the daily reports test-suite."""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Iterator

# Ensure project root is on sys.path for imports
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import pytest
from flask import Flask
from flask.testing import FlaskClient

from adsc_reports_web import create_app, dispose_engine, limiter
from adsc_reports_web.config import AppConfig
from adsc_reports_web.database import create_db_engine, init_schema
from adsc_reports_web.repositories import ReportsRepository
from adsc_reports_web.services import ReportService, SessionAuthGate

ADMIN_USERNAME = "admin"
ADMIN_PASSWORD = "Admin!2345"


class StaticCaller:
    """Stand-in for ``flask_login.current_user`` outside a request."""

    def __init__(self, authenticated: bool):
        self.is_authenticated = authenticated


def make_config(tmp_path: Path, **overrides) -> AppConfig:
    """Return an :class:`AppConfig` backed by a throwaway SQLite file."""

    values = dict(
        database_url=f"sqlite:///{tmp_path / 'reports.db'}",
        secret_key="testing",
        csrf_enabled=False,
        login_rate_limit="100 per minute",
        admin_username=ADMIN_USERNAME,
        admin_password=ADMIN_PASSWORD,
    )
    values.update(overrides)
    return AppConfig(**values)


@pytest.fixture
def app(make_app) -> Flask:
    """Return an application with an empty database and the admin account."""

    return make_app()


@pytest.fixture
def make_app(tmp_path: Path) -> Iterator:
    """Return a factory building apps with :class:`AppConfig` overrides."""

    created = []

    def factory(**overrides) -> Flask:
        app = create_app(make_config(tmp_path, **overrides))
        app.config["TESTING"] = True
        with app.app_context():
            limiter.reset()
        created.append(app)
        return app

    yield factory
    for app in created:
        with app.app_context():
            limiter.reset()
        dispose_engine(app)


@pytest.fixture
def client(app: Flask) -> Iterator[FlaskClient]:
    """Provide a test client with a deterministic remote address."""

    with app.test_client() as test_client:
        test_client.environ_base["REMOTE_ADDR"] = "203.0.113.10"
        yield test_client


@pytest.fixture
def admin_client(client: FlaskClient) -> FlaskClient:
    """Return ``client`` signed in as the bootstrap admin."""

    response = client.post(
        "/api/login", json={"username": ADMIN_USERNAME, "password": ADMIN_PASSWORD}
    )
    assert response.status_code == 200
    return client


@pytest.fixture
def engine(tmp_path: Path):
    """Yield a standalone engine with the schema created."""

    engine = create_db_engine(f"sqlite:///{tmp_path / 'repo.db'}")
    init_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def repo(engine) -> ReportsRepository:
    return ReportsRepository(engine)


@pytest.fixture
def service(repo: ReportsRepository) -> ReportService:
    return ReportService(repo, SessionAuthGate())


@pytest.fixture
def admin() -> StaticCaller:
    return StaticCaller(authenticated=True)


@pytest.fixture
def anonymous() -> StaticCaller:
    return StaticCaller(authenticated=False)
