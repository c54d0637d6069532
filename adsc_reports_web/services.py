"""Business logic for saving and maintaining daily reports."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence

from packages.adsc_common import (
    AMOUNT_LIMIT,
    DailyReport,
    LineItem,
    LineItemKind,
    aggregate,
    build_report,
    format_money,
    sum_money,
    to_decimal,
)

from .errors import NotFoundError, UnauthorizedError, ValidationError
from .forms import (
    PATCH_TOTAL_FIELDS,
    is_valid_date,
    parse_report_patch,
    parse_report_payload,
)
from .repositories import ReportsRepository

logger = logging.getLogger(__name__)

TOTALS_NOT_EXACT = "Amounts cannot be totalled exactly"


class AuthenticationGate(Protocol):
    """Decides whether a caller may mutate stored reports."""

    def is_authorized(self, caller: Any) -> bool: ...


class SessionAuthGate:
    """Authorizes callers that Flask-Login reports as authenticated."""

    def is_authorized(self, caller: Any) -> bool:
        return caller is not None and bool(getattr(caller, "is_authenticated", False))


def _line_item_errors(
    items: Sequence[LineItem], kind: LineItemKind, path: str
) -> Dict[str, str]:
    label = "Service" if kind is LineItemKind.SERVICE else "Expense"
    errors: Dict[str, str] = {}
    for index, item in enumerate(items):
        if not item.name or not item.name.strip():
            errors[f"{path}.{index}.name"] = f"{label} name is required"
        if item.amount < 0:
            errors[f"{path}.{index}.amount"] = "Amount must be positive"
        elif item.amount >= AMOUNT_LIMIT:
            errors[f"{path}.{index}.amount"] = "Amount is too large"
    return errors


class ReportService:
    """Validates, totals and persists daily reports.

    Mutating operations other than the initial save consult the injected
    :class:`AuthenticationGate` before touching the repository.
    """

    def __init__(self, repository: ReportsRepository, gate: AuthenticationGate):
        self._repository = repository
        self._gate = gate

    def _require_authorized(self, caller: Any) -> None:
        if not self._gate.is_authorized(caller):
            raise UnauthorizedError()

    def save_report(
        self,
        date: str,
        services: Sequence[LineItem],
        expenses: Sequence[LineItem],
        online_payment: Optional[Decimal] = None,
    ) -> DailyReport:
        """Validate and total a new report, then store it.

        Raises:
            ValidationError: If the date or any line item is malformed, or the
                online payment exceeds the service total.
            DuplicateDateError: If a report already exists for ``date``. The
                existing report is left untouched; callers that want to
                replace it must use :meth:`update_report`.
        """

        errors: Dict[str, str] = {}
        if not is_valid_date(date):
            errors["date"] = "Date is required and must be YYYY-MM-DD"
        errors.update(_line_item_errors(services, LineItemKind.SERVICE, "services"))
        errors.update(_line_item_errors(expenses, LineItemKind.EXPENSE, "expenses"))
        if online_payment is not None and online_payment < 0:
            errors["onlinePayment"] = "Amount must be positive"
        elif online_payment is not None and online_payment >= AMOUNT_LIMIT:
            errors["onlinePayment"] = "Amount is too large"
        if errors:
            raise ValidationError(errors)

        try:
            report = build_report(date, services, expenses, online_payment)
        except ArithmeticError as exc:
            raise ValidationError({"amounts": TOTALS_NOT_EXACT}) from exc
        if to_decimal(report.cash_payment) < 0:
            raise ValidationError(
                {"onlinePayment": "Online payment cannot exceed total services"}
            )
        saved = self._repository.create(report)
        logger.info("Saved report %s for %s", saved.id, saved.date)
        return saved

    def save_payload(self, payload: Any) -> DailyReport:
        """Validate a raw JSON submission and save it via :meth:`save_report`.

        Totals sent by the client are compared with the recomputed ones and a
        mismatch is logged; the stored totals always come from the line items.
        """

        form_data, errors = parse_report_payload(payload)
        if errors or form_data is None:
            raise ValidationError(errors)

        saved = self.save_report(
            form_data.date,
            form_data.services,
            form_data.expenses,
            form_data.online_payment,
        )
        stored = saved.to_dict()
        for key, value in form_data.client_totals.items():
            if format_money(value) != stored[key]:
                logger.warning(
                    "Client %s %s for %s differs from computed %s",
                    key,
                    value,
                    saved.date,
                    stored[key],
                )
        return saved

    def list_reports(self) -> List[DailyReport]:
        return self._repository.get_all()

    def get_report(self, report_id: str) -> DailyReport:
        report = self._repository.get_by_id(report_id)
        if report is None:
            raise NotFoundError("Report not found")
        return report

    def get_report_by_date(self, date: str) -> DailyReport:
        report = self._repository.get_by_date(date)
        if report is None:
            raise NotFoundError("Report not found for this date")
        return report

    def update_report(
        self,
        report_id: str,
        patch: Mapping[str, Any],
        caller: Any,
        *,
        recompute: bool = False,
    ) -> DailyReport:
        """Apply a sparse patch to an existing report.

        Without ``recompute`` only the supplied fields change, even when that
        leaves the totals inconsistent with the line items. With
        ``recompute=True`` the totals and cash split are derived again from
        the patched line items and any totals in ``patch`` are overridden.

        Raises:
            UnauthorizedError: If ``caller`` fails the authentication gate.
            ValidationError: If ``patch`` is malformed.
            NotFoundError: If the report does not exist.
        """

        self._require_authorized(caller)
        fields, errors = parse_report_patch(patch)
        if errors or fields is None:
            raise ValidationError(errors)

        if recompute:
            fields.update(self._recomputed_totals(report_id, fields))

        self._repository.update(report_id, fields)
        logger.info("Updated report %s fields: %s", report_id, ", ".join(sorted(fields)))
        return self.get_report(report_id)

    def _recomputed_totals(
        self, report_id: str, fields: Mapping[str, Any]
    ) -> Dict[str, Optional[str]]:
        existing = self.get_report(report_id)
        services = fields.get("services", existing.services)
        expenses = fields.get("expenses", existing.expenses)
        online = fields.get("online_payment", existing.online_payment)
        try:
            summary = aggregate(services, expenses)
            cash = (
                sum_money([summary.total_services, to_decimal(online).copy_negate()])
                if online is not None
                else None
            )
        except ArithmeticError as exc:
            raise ValidationError({"amounts": TOTALS_NOT_EXACT}) from exc
        totals: Dict[str, Optional[str]] = {
            PATCH_TOTAL_FIELDS["totalServices"]: format_money(summary.total_services),
            PATCH_TOTAL_FIELDS["totalExpenses"]: format_money(summary.total_expenses),
            PATCH_TOTAL_FIELDS["netProfit"]: format_money(summary.net_profit),
        }
        if cash is not None:
            totals["cash_payment"] = format_money(cash)
        return totals

    def delete_report(self, report_id: str, caller: Any) -> None:
        """Permanently remove a report.

        Raises:
            UnauthorizedError: If ``caller`` fails the authentication gate;
                the repository is not consulted.
            NotFoundError: If the report does not exist.
        """

        self._require_authorized(caller)
        self._repository.delete(report_id)
        logger.info("Deleted report %s", report_id)
