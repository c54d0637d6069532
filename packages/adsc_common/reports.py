"""Daily report domain models and aggregation helpers.

These dataclasses provide a shared representation of a day's service
revenue and expense line items. They avoid persistence concerns so the
models can be used from the Flask API as well as from scripts and tests.

Monetary values are kept as :class:`~decimal.Decimal` while in memory and
rendered as fixed-point strings with two fraction digits when stored, so
totals never accumulate binary floating point error.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import (
    ROUND_HALF_UP,
    Context,
    Decimal,
    DivisionByZero,
    Inexact,
    InvalidOperation,
    Overflow,
    localcontext,
)
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence
from uuid import uuid4

MONEY_QUANTUM = Decimal("0.01")

# Amounts must stay below this, i.e. at most 15 integer digits.
AMOUNT_LIMIT = Decimal("1e15")

# Additions run with enough digits to stay exact for bounded amounts. Inexact
# is trapped so a sum that would need rounding raises instead.
_SUM_CONTEXT = Context(
    prec=100,
    rounding=ROUND_HALF_UP,
    traps=[InvalidOperation, Inexact, Overflow, DivisionByZero],
)
_FORMAT_CONTEXT = Context(
    prec=100, rounding=ROUND_HALF_UP, traps=[InvalidOperation, Overflow]
)


class LineItemKind(str, Enum):
    """Distinguishes revenue line items from expense line items."""

    SERVICE = "service"
    EXPENSE = "expense"


def to_decimal(value: Any) -> Decimal:
    """Convert ``value`` to an exact :class:`Decimal`.

    Floats are converted through their shortest ``repr`` so ``0.1`` becomes
    ``Decimal('0.1')`` rather than its binary expansion.

    Raises:
        ValueError: If ``value`` is a boolean, is not numeric, or is not a
            finite number.
    """

    if isinstance(value, bool):
        raise ValueError("Amount must be a number")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, float):
        result = Decimal(repr(value))
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation as exc:
            raise ValueError("Amount must be a number") from exc
    else:
        raise ValueError("Amount must be a number")
    if not result.is_finite():
        raise ValueError("Amount must be a finite number")
    return result


def format_money(value: Decimal) -> str:
    """Return ``value`` as a fixed-point string with two fraction digits.

    For example ``Decimal('45')`` becomes ``"45.00"`` and
    ``Decimal('-0.004')`` becomes ``"0.00"``.
    """

    quantized = value.quantize(
        MONEY_QUANTUM, rounding=ROUND_HALF_UP, context=_FORMAT_CONTEXT
    )
    if quantized.is_zero():
        quantized = abs(quantized)
    return f"{quantized:.2f}"


@dataclass(slots=True)
class LineItem:
    """Single named amount captured on a daily report."""

    name: str
    amount: Decimal
    id: str = field(default_factory=lambda: str(uuid4()))

    def to_dict(self) -> Dict[str, str]:
        """Return a JSON-friendly mapping preserving the exact amount."""

        return {"id": self.id, "name": self.name, "amount": format(self.amount, "f")}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "LineItem":
        """Build a :class:`LineItem` from a stored mapping."""

        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            amount=to_decimal(data["amount"]),
        )


@dataclass(slots=True)
class ReportSummary:
    """Aggregate totals returned by :func:`aggregate`."""

    total_services: Decimal
    total_expenses: Decimal
    net_profit: Decimal


def sum_money(values: Iterable[Decimal]) -> Decimal:
    """Add ``values`` exactly.

    Raises:
        decimal.Inexact: If the exact sum needs more than 100 digits.
    """

    with localcontext(_SUM_CONTEXT):
        return sum(values, Decimal())


def _sum_amounts(items: Iterable[LineItem]) -> Decimal:
    return sum_money(item.amount for item in items)


def aggregate(
    services: Sequence[LineItem], expenses: Sequence[LineItem]
) -> ReportSummary:
    """Compute exact service and expense totals and the resulting net profit.

    Empty sequences yield an all-zero summary. ``net_profit`` is negative
    when expenses exceed services.

    Raises:
        decimal.Inexact: If a total cannot be represented exactly.
    """

    total_services = _sum_amounts(services)
    total_expenses = _sum_amounts(expenses)
    return ReportSummary(
        total_services=total_services,
        total_expenses=total_expenses,
        net_profit=sum_money([total_services, total_expenses.copy_negate()]),
    )


@dataclass(slots=True)
class DailyReport:
    """All line items for one calendar date plus their derived totals."""

    date: str
    total_services: str
    total_expenses: str
    net_profit: str
    services: List[LineItem] = field(default_factory=list)
    expenses: List[LineItem] = field(default_factory=list)
    online_payment: Optional[str] = None
    cash_payment: Optional[str] = None
    id: Optional[str] = None
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        """Return the report using the camelCase keys of the JSON API."""

        return {
            "id": self.id,
            "date": self.date,
            "services": [item.to_dict() for item in self.services],
            "expenses": [item.to_dict() for item in self.expenses],
            "totalServices": self.total_services,
            "totalExpenses": self.total_expenses,
            "netProfit": self.net_profit,
            "onlinePayment": self.online_payment,
            "cashPayment": self.cash_payment,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


def build_report(
    date: str,
    services: Sequence[LineItem],
    expenses: Sequence[LineItem],
    online_payment: Optional[Decimal] = None,
) -> DailyReport:
    """Assemble an unsaved :class:`DailyReport` with totals from :func:`aggregate`.

    ``online_payment`` defaults to zero, in which case the full service total
    is attributed to cash.
    """

    summary = aggregate(services, expenses)
    online = online_payment if online_payment is not None else Decimal()
    return DailyReport(
        date=date,
        services=list(services),
        expenses=list(expenses),
        total_services=format_money(summary.total_services),
        total_expenses=format_money(summary.total_expenses),
        net_profit=format_money(summary.net_profit),
        online_payment=format_money(online),
        cash_payment=format_money(
            sum_money([summary.total_services, online.copy_negate()])
        ),
    )
