"""Payload parsing and validation helpers.

Each ``parse_*`` function returns a tuple of ``(result, errors)``.
``result`` is ``None`` when validation fails and ``errors`` maps a dotted
field path to a user-facing message.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Tuple

from packages.adsc_common import (
    AMOUNT_LIMIT,
    LineItem,
    LineItemKind,
    format_money,
    to_decimal,
)

DATE_INPUT_FORMAT = "%Y-%m-%d"

_USERNAME_RE = re.compile(r"^[a-zA-Z0-9_]+$")

_ITEM_LABELS = {LineItemKind.SERVICE: "Service", LineItemKind.EXPENSE: "Expense"}

# JSON key -> stored column for fields a sparse patch may change.
PATCH_TOTAL_FIELDS = {
    "totalServices": "total_services",
    "totalExpenses": "total_expenses",
    "netProfit": "net_profit",
}
PATCH_PAYMENT_FIELDS = {
    "onlinePayment": "online_payment",
    "cashPayment": "cash_payment",
}


@dataclass(slots=True)
class ReportFormData:
    """Validated report submission returned by :func:`parse_report_payload`."""

    date: str
    services: List[LineItem]
    expenses: List[LineItem]
    online_payment: Optional[Decimal] = None
    client_totals: Dict[str, Decimal] = field(default_factory=dict)


@dataclass(slots=True)
class PasswordChangeData:
    """Validated password change request."""

    current_password: str
    new_password: str


def is_valid_date(value: Any) -> bool:
    """Return whether ``value`` is a ``YYYY-MM-DD`` calendar date string."""

    if not isinstance(value, str):
        return False
    try:
        parsed = datetime.strptime(value, DATE_INPUT_FORMAT)
    except ValueError:
        return False
    return parsed.strftime(DATE_INPUT_FORMAT) == value


def _parse_money(
    value: Any, path: str, errors: Dict[str, str], *, allow_negative: bool = False
) -> Optional[Decimal]:
    try:
        amount = to_decimal(value)
    except ValueError:
        errors[path] = "Amount must be a valid number"
        return None
    if amount < 0 and not allow_negative:
        errors[path] = "Amount must be positive"
        return None
    if amount.copy_abs() >= AMOUNT_LIMIT:
        errors[path] = "Amount is too large"
        return None
    return amount


def parse_line_items(
    raw: Any, kind: LineItemKind, path: str
) -> Tuple[List[LineItem], Dict[str, str]]:
    """Validate a list of line item mappings.

    Items without an ``id`` receive a generated one. Names are stripped of
    surrounding whitespace.
    """

    errors: Dict[str, str] = {}
    if raw is None:
        return [], errors
    if not isinstance(raw, list):
        errors[path] = "Must be a list of line items"
        return [], errors

    label = _ITEM_LABELS[kind]
    items: List[LineItem] = []
    for index, entry in enumerate(raw):
        item_path = f"{path}.{index}"
        if not isinstance(entry, Mapping):
            errors[item_path] = "Line item must be an object"
            continue
        name = entry.get("name")
        name = name.strip() if isinstance(name, str) else ""
        if not name:
            errors[f"{item_path}.name"] = f"{label} name is required"
        amount = _parse_money(entry.get("amount"), f"{item_path}.amount", errors)
        item_id = entry.get("id")
        if item_id is not None and (not isinstance(item_id, str) or not item_id.strip()):
            errors[f"{item_path}.id"] = "Line item id must be a non-empty string"
            continue
        if name and amount is not None:
            if item_id:
                items.append(LineItem(id=item_id.strip(), name=name, amount=amount))
            else:
                items.append(LineItem(name=name, amount=amount))
    return items, errors


def parse_report_payload(
    payload: Any,
) -> Tuple[Optional[ReportFormData], Dict[str, str]]:
    """Validate a report creation payload.

    Client supplied ``totalServices``, ``totalExpenses`` and ``netProfit``
    are parsed and returned in ``client_totals`` but never trusted; totals are
    always recomputed from the line items.
    """

    if not isinstance(payload, Mapping):
        return None, {"body": "Request body must be a JSON object"}

    errors: Dict[str, str] = {}
    date = payload.get("date")
    if not is_valid_date(date):
        errors["date"] = "Date is required and must be YYYY-MM-DD"

    services, service_errors = parse_line_items(
        payload.get("services"), LineItemKind.SERVICE, "services"
    )
    expenses, expense_errors = parse_line_items(
        payload.get("expenses"), LineItemKind.EXPENSE, "expenses"
    )
    errors.update(service_errors)
    errors.update(expense_errors)

    online_payment = None
    if payload.get("onlinePayment") is not None:
        online_payment = _parse_money(
            payload["onlinePayment"], "onlinePayment", errors
        )

    client_totals: Dict[str, Decimal] = {}
    for key in PATCH_TOTAL_FIELDS:
        if payload.get(key) is not None:
            value = _parse_money(payload[key], key, errors, allow_negative=True)
            if value is not None:
                client_totals[key] = value

    if errors:
        return None, errors

    return (
        ReportFormData(
            date=date,
            services=services,
            expenses=expenses,
            online_payment=online_payment,
            client_totals=client_totals,
        ),
        {},
    )


def parse_report_patch(payload: Any) -> Tuple[Optional[Dict[str, Any]], Dict[str, str]]:
    """Validate a sparse report patch.

    Only keys present in ``payload`` are returned, translated to column
    names. Line items become :class:`LineItem` lists and amounts are
    normalised to two fraction digits. ``onlinePayment`` and ``cashPayment``
    accept ``null`` to clear the stored value; the totals and line item lists
    do not. Keys that are not patchable (``id``, ``date``, ``createdAt`` and
    anything unknown) are ignored.
    """

    if not isinstance(payload, Mapping):
        return None, {"body": "Request body must be a JSON object"}

    errors: Dict[str, str] = {}
    fields: Dict[str, Any] = {}

    for key, kind in (("services", LineItemKind.SERVICE), ("expenses", LineItemKind.EXPENSE)):
        if key not in payload:
            continue
        if payload[key] is None:
            errors[key] = "Must be a list of line items"
            continue
        items, item_errors = parse_line_items(payload[key], kind, key)
        errors.update(item_errors)
        fields[key] = items

    for key, column in PATCH_TOTAL_FIELDS.items():
        if key not in payload:
            continue
        value = _parse_money(payload[key], key, errors, allow_negative=True)
        if value is not None:
            fields[column] = format_money(value)

    for key, column in PATCH_PAYMENT_FIELDS.items():
        if key not in payload:
            continue
        if payload[key] is None:
            fields[column] = None
            continue
        value = _parse_money(payload[key], key, errors)
        if value is not None:
            fields[column] = format_money(value)

    if errors:
        return None, errors
    return fields, {}


def password_problems(candidate: str) -> List[str]:
    """Return the password rules ``candidate`` violates."""

    problems: List[str] = []
    if len(candidate) < 8:
        problems.append("Password must be at least 8 characters")
    if len(candidate) > 100:
        problems.append("Password must not exceed 100 characters")
    if not re.search(r"[A-Z]", candidate):
        problems.append("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", candidate):
        problems.append("Password must contain at least one lowercase letter")
    if not re.search(r"[0-9]", candidate):
        problems.append("Password must contain at least one number")
    if not re.search(r"[^A-Za-z0-9]", candidate):
        problems.append("Password must contain at least one special character")
    return problems


def is_valid_username(candidate: str) -> bool:
    """Return whether ``candidate`` is 3-30 letters, digits or underscores."""

    return 3 <= len(candidate) <= 30 and bool(_USERNAME_RE.match(candidate))


def parse_password_change(
    payload: Any,
) -> Tuple[Optional[PasswordChangeData], Dict[str, str]]:
    """Validate a password change submission."""

    if not isinstance(payload, Mapping):
        return None, {"body": "Request body must be a JSON object"}

    current = payload.get("currentPassword") or ""
    new = payload.get("newPassword") or ""
    errors: Dict[str, str] = {}
    if not isinstance(current, str) or not current:
        errors["currentPassword"] = "Current password is required"
    if not isinstance(new, str) or not new:
        errors["newPassword"] = "New password is required"
    else:
        problems = password_problems(new)
        if problems:
            errors["newPassword"] = problems[0]
    if errors:
        return None, errors
    return PasswordChangeData(current_password=current, new_password=new), {}
