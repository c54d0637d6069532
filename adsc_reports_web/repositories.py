"""Database access layer for the daily reports web app."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional
from uuid import UUID, uuid4

from sqlalchemy import delete, insert, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from packages.adsc_common import DailyReport, LineItem

from .database import daily_reports, session_scope, users
from .errors import DuplicateDateError, InvalidIdentifierError, NotFoundError

logger = logging.getLogger(__name__)

PATCHABLE_COLUMNS = frozenset(
    {
        "services",
        "expenses",
        "total_services",
        "total_expenses",
        "net_profit",
        "online_payment",
        "cash_payment",
    }
)


def new_identifier() -> str:
    """Return a fresh storage identifier."""

    return uuid4().hex


def normalize_identifier(value: Any) -> str:
    """Return ``value`` as a 32 character hex id.

    Raises:
        InvalidIdentifierError: If ``value`` is not a UUID string.
    """

    if not isinstance(value, str):
        raise InvalidIdentifierError(f"Invalid report ID: {value!r}")
    try:
        return UUID(value).hex
    except ValueError as exc:
        raise InvalidIdentifierError(f"Invalid report ID: {value}") from exc


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _dump_items(items: List[LineItem]) -> List[Dict[str, str]]:
    return [item.to_dict() for item in items]


class ReportsRepository:
    """Provides CRUD operations for daily reports, one per calendar date."""

    def __init__(self, engine: Engine):
        self._engine = engine

    def create(self, report: DailyReport) -> DailyReport:
        """Persist a new report and return it with ``id`` and ``created_at``.

        Raises:
            DuplicateDateError: If a report already exists for ``report.date``.
        """

        report_id = new_identifier()
        created_at = datetime.now(timezone.utc)
        payload = {
            "id": report_id,
            "date": report.date,
            "services": _dump_items(report.services),
            "expenses": _dump_items(report.expenses),
            "total_services": report.total_services,
            "total_expenses": report.total_expenses,
            "net_profit": report.net_profit,
            "online_payment": report.online_payment,
            "cash_payment": report.cash_payment,
            "created_at": created_at,
        }
        try:
            with session_scope(self._engine) as session:
                session.execute(insert(daily_reports).values(**payload))
        except IntegrityError as exc:
            logger.info("Rejected duplicate report for %s", report.date)
            raise DuplicateDateError(report.date) from exc
        return replace(report, id=report_id, created_at=created_at)

    def get_all(self) -> List[DailyReport]:
        """Return all reports, most recent date first."""

        with session_scope(self._engine) as session:
            rows = session.execute(
                select(daily_reports).order_by(daily_reports.c.date.desc())
            ).all()
        return [self._row_to_report(row) for row in rows]

    def get_by_id(self, report_id: str) -> Optional[DailyReport]:
        """Fetch a single report by id, or ``None`` when it does not exist."""

        key = normalize_identifier(report_id)
        with session_scope(self._engine) as session:
            row = session.execute(
                select(daily_reports).where(daily_reports.c.id == key)
            ).one_or_none()
        return self._row_to_report(row) if row is not None else None

    def get_by_date(self, date: str) -> Optional[DailyReport]:
        """Fetch the report stored for ``date``, or ``None``."""

        with session_scope(self._engine) as session:
            row = session.execute(
                select(daily_reports).where(daily_reports.c.date == date)
            ).one_or_none()
        return self._row_to_report(row) if row is not None else None

    def update(self, report_id: str, fields: Mapping[str, Any]) -> None:
        """Apply a sparse patch to the stored report.

        Only keys present in ``fields`` are written. Totals are not
        recomputed here; callers pass consistent values or ask the service
        layer to recompute.

        Raises:
            NotFoundError: If no report matches ``report_id``.
            ValueError: If ``fields`` names a column that cannot be patched.
        """

        key = normalize_identifier(report_id)
        unknown = set(fields) - PATCHABLE_COLUMNS
        if unknown:
            raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")
        values = dict(fields)
        for column in ("services", "expenses"):
            if column in values:
                values[column] = _dump_items(values[column])

        with session_scope(self._engine) as session:
            exists = session.execute(
                select(daily_reports.c.id).where(daily_reports.c.id == key)
            ).one_or_none()
            if exists is None:
                raise NotFoundError(f"Report {report_id} not found")
            if values:
                session.execute(
                    update(daily_reports)
                    .where(daily_reports.c.id == key)
                    .values(**values)
                )

    def delete(self, report_id: str) -> None:
        """Remove a report permanently.

        Raises:
            NotFoundError: If no report matches ``report_id``.
        """

        key = normalize_identifier(report_id)
        with session_scope(self._engine) as session:
            result = session.execute(
                delete(daily_reports).where(daily_reports.c.id == key)
            )
            if result.rowcount == 0:
                raise NotFoundError(f"Report {report_id} not found")

    @staticmethod
    def _row_to_report(row) -> DailyReport:
        """Convert a SQLAlchemy row to a :class:`DailyReport`."""

        values = row._mapping
        return DailyReport(
            id=values["id"],
            date=values["date"],
            services=[LineItem.from_dict(item) for item in values["services"] or []],
            expenses=[LineItem.from_dict(item) for item in values["expenses"] or []],
            total_services=values["total_services"],
            total_expenses=values["total_expenses"],
            net_profit=values["net_profit"],
            online_payment=values["online_payment"],
            cash_payment=values["cash_payment"],
            created_at=_as_utc(values["created_at"]),
        )


@dataclass(slots=True)
class StoredUser:
    """Account record used by the authentication blueprint."""

    id: str
    username: str
    password_hash: str
    created_at: datetime


class UsersRepository:
    """Stores admin accounts keyed by unique username."""

    def __init__(self, engine: Engine):
        self._engine = engine

    def create(self, username: str, password_hash: str) -> StoredUser:
        """Insert a new account.

        Raises:
            ValueError: If ``username`` is already taken.
        """

        record = StoredUser(
            id=new_identifier(),
            username=username,
            password_hash=password_hash,
            created_at=datetime.now(timezone.utc),
        )
        try:
            with session_scope(self._engine) as session:
                session.execute(
                    insert(users).values(
                        id=record.id,
                        username=record.username,
                        password_hash=record.password_hash,
                        created_at=record.created_at,
                    )
                )
        except IntegrityError as exc:
            raise ValueError(f"Username {username} is already taken") from exc
        return record

    def get_by_username(self, username: str) -> Optional[StoredUser]:
        with session_scope(self._engine) as session:
            row = session.execute(
                select(users).where(users.c.username == username)
            ).one_or_none()
        return self._row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: str) -> Optional[StoredUser]:
        try:
            key = normalize_identifier(user_id)
        except InvalidIdentifierError:
            return None
        with session_scope(self._engine) as session:
            row = session.execute(select(users).where(users.c.id == key)).one_or_none()
        return self._row_to_user(row) if row is not None else None

    def set_password_hash(self, user_id: str, password_hash: str) -> None:
        with session_scope(self._engine) as session:
            session.execute(
                update(users)
                .where(users.c.id == user_id)
                .values(password_hash=password_hash)
            )

    @staticmethod
    def _row_to_user(row) -> StoredUser:
        values = row._mapping
        return StoredUser(
            id=values["id"],
            username=values["username"],
            password_hash=values["password_hash"],
            created_at=_as_utc(values["created_at"]),
        )
