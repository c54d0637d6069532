"""Filtering, analytics and export helpers for the admin report views."""

from __future__ import annotations

import csv
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from io import StringIO
from typing import Any, Dict, Final, Iterable, List, Mapping, Optional, Tuple

from packages.adsc_common import (
    DailyReport,
    LineItem,
    format_money,
    sum_money,
    to_decimal,
)

from .forms import is_valid_date

PROFIT_FILTERS: Final[Tuple[str, ...]] = ("all", "profit", "loss")
SORT_FIELDS: Final[Tuple[str, ...]] = ("date", "profit", "revenue")
SORT_ORDERS: Final[Tuple[str, ...]] = ("asc", "desc")

CSV_HEADERS: Final[List[str]] = [
    "Date",
    "Total Services",
    "Total Expenses",
    "Net Profit",
    "Services",
    "Expenses",
]

_FORMULA_PREFIXES: Final[tuple[str, ...]] = ("=", "+", "-", "@")


@dataclass(frozen=True, slots=True)
class ReportFilters:
    """Admin list filters. Defaults select every report, newest first."""

    date_from: Optional[str] = None
    date_to: Optional[str] = None
    profit: str = "all"
    query: str = ""
    sort: str = "date"
    order: str = "desc"

    def describe(self) -> Dict[str, str]:
        """Return the filters in the shape embedded in summary exports."""

        return {
            "dateFrom": self.date_from or "All",
            "dateTo": self.date_to or "All",
            "profitFilter": self.profit,
            "searchQuery": self.query or "None",
        }


def parse_filters(args: Mapping[str, str]) -> Tuple[Optional[ReportFilters], Dict[str, str]]:
    """Validate admin filter query parameters.

    Returns ``(filters, errors)`` where ``filters`` is ``None`` on failure.
    """

    errors: Dict[str, str] = {}
    date_from = (args.get("date_from") or "").strip() or None
    date_to = (args.get("date_to") or "").strip() or None
    for key, value in (("date_from", date_from), ("date_to", date_to)):
        if value is not None and not is_valid_date(value):
            errors[key] = "Date must be YYYY-MM-DD"
    profit = (args.get("profit") or "all").strip().lower()
    if profit not in PROFIT_FILTERS:
        errors["profit"] = f"Must be one of: {', '.join(PROFIT_FILTERS)}"
    sort = (args.get("sort") or "date").strip().lower()
    if sort not in SORT_FIELDS:
        errors["sort"] = f"Must be one of: {', '.join(SORT_FIELDS)}"
    order = (args.get("order") or "desc").strip().lower()
    if order not in SORT_ORDERS:
        errors["order"] = f"Must be one of: {', '.join(SORT_ORDERS)}"
    if errors:
        return None, errors
    return (
        ReportFilters(
            date_from=date_from,
            date_to=date_to,
            profit=profit,
            query=(args.get("q") or "").strip(),
            sort=sort,
            order=order,
        ),
        {},
    )


def _matches_query(report: DailyReport, query: str) -> bool:
    needle = query.lower()
    year, month, day = report.date.split("-")
    haystack = [report.date, f"{day}/{month}/{year}"]
    haystack.extend(item.name.lower() for item in report.services)
    haystack.extend(item.name.lower() for item in report.expenses)
    return any(needle in text for text in haystack)


_SORT_KEYS = {
    "date": lambda report: report.date,
    "profit": lambda report: to_decimal(report.net_profit),
    "revenue": lambda report: to_decimal(report.total_services),
}


def filter_reports(
    reports: Iterable[DailyReport], filters: ReportFilters
) -> List[DailyReport]:
    """Apply date range, profit/loss and text filters, then sort."""

    selected = []
    for report in reports:
        if filters.date_from and report.date < filters.date_from:
            continue
        if filters.date_to and report.date > filters.date_to:
            continue
        profit = to_decimal(report.net_profit)
        if filters.profit == "profit" and profit < 0:
            continue
        if filters.profit == "loss" and profit >= 0:
            continue
        if filters.query and not _matches_query(report, filters.query):
            continue
        selected.append(report)
    selected.sort(key=_SORT_KEYS[filters.sort], reverse=filters.order == "desc")
    return selected


def summarize_reports(reports: List[DailyReport]) -> Dict[str, Any]:
    """Return count, totals and average profit across ``reports``."""

    revenue = sum_money(to_decimal(r.total_services) for r in reports)
    expenses = sum_money(to_decimal(r.total_expenses) for r in reports)
    profit = sum_money(to_decimal(r.net_profit) for r in reports)
    average = profit / len(reports) if reports else Decimal()
    return {
        "totalReports": len(reports),
        "totalRevenue": format_money(revenue),
        "totalExpenses": format_money(expenses),
        "totalProfit": format_money(profit),
        "averageProfit": format_money(average),
    }


def build_summary_export(
    reports: List[DailyReport],
    filters: ReportFilters,
    generated_on: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Assemble the downloadable summary document for filtered reports."""

    generated = generated_on or datetime.now(timezone.utc)
    summary: Dict[str, Any] = {
        "generatedOn": generated.isoformat(),
        "filters": filters.describe(),
    }
    summary.update(summarize_reports(reports))
    summary["reports"] = [
        {
            "date": r.date,
            "totalServices": r.total_services,
            "totalExpenses": r.total_expenses,
            "netProfit": r.net_profit,
        }
        for r in reports
    ]
    return summary


def _escape_for_csv(value: str | None) -> str:
    """Return ``value`` escaped to avoid CSV formula injection.

    Text beginning with characters that spreadsheet software interprets as
    formulas (``=``, ``+``, ``-``, ``@``) is prefixed with an apostrophe.
    """

    if value is None:
        return ""
    text = str(value)
    if text.startswith(_FORMULA_PREFIXES):
        return f"'{text}"
    return text


def _join_items(items: Iterable[LineItem]) -> str:
    return "; ".join(f"{item.name}: {item.amount:f}" for item in items)


def reports_to_csv(reports: Iterable[DailyReport]) -> str:
    """Render reports as CSV with one row per date."""

    output = StringIO()
    writer = csv.writer(output)
    writer.writerow(CSV_HEADERS)
    for report in reports:
        writer.writerow(
            [
                report.date,
                report.total_services,
                report.total_expenses,
                report.net_profit,
                _escape_for_csv(_join_items(report.services)),
                _escape_for_csv(_join_items(report.expenses)),
            ]
        )
    return output.getvalue()


def reports_to_json(reports: Iterable[DailyReport]) -> str:
    """Render reports as an indented JSON array."""

    return json.dumps([report.to_dict() for report in reports], indent=2)


def export_filename(prefix: str, extension: str, today: Optional[datetime] = None) -> str:
    """Return a dated download name such as ``adsc-reports-2024-01-15.csv``."""

    stamp = (today or datetime.now(timezone.utc)).strftime("%Y-%m-%d")
    return f"{prefix}-{stamp}.{extension}"
