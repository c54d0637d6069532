"""Common domain models and helpers shared across ADSC apps."""

from .reports import (
    AMOUNT_LIMIT,
    MONEY_QUANTUM,
    DailyReport,
    LineItem,
    LineItemKind,
    ReportSummary,
    aggregate,
    build_report,
    format_money,
    sum_money,
    to_decimal,
)

__all__ = [
    "AMOUNT_LIMIT",
    "MONEY_QUANTUM",
    "DailyReport",
    "LineItem",
    "LineItemKind",
    "ReportSummary",
    "aggregate",
    "build_report",
    "format_money",
    "sum_money",
    "to_decimal",
]
