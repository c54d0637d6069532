"""Tests for :class:`adsc_reports_web.services.ReportService`."""

from __future__ import annotations

import logging
from decimal import Decimal
from uuid import uuid4

import pytest

from adsc_reports_web.errors import (
    DuplicateDateError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from adsc_reports_web.services import ReportService, SessionAuthGate
from packages.adsc_common import LineItem


def _services():
    return [
        LineItem(name="Haircut", amount=Decimal("20.00")),
        LineItem(name="Shave", amount=Decimal("30.00")),
    ]


def _expenses():
    return [LineItem(name="Supplies", amount=Decimal("5.00"))]


class RecordingRepository:
    """Repository double that fails the test if it is touched."""

    def __init__(self):
        self.calls = []

    def __getattr__(self, name):
        def record(*args, **kwargs):
            self.calls.append(name)
            raise AssertionError(f"repository.{name} should not be called")

        return record


def test_save_report_computes_totals(service: ReportService) -> None:
    saved = service.save_report("2024-01-15", _services(), _expenses())

    assert saved.id
    assert (saved.total_services, saved.total_expenses, saved.net_profit) == (
        "50.00",
        "5.00",
        "45.00",
    )
    assert service.get_report(saved.id).to_dict() == saved.to_dict()


def test_duplicate_save_leaves_original_untouched(service: ReportService) -> None:
    original = service.save_report("2024-01-15", _services(), _expenses())

    with pytest.raises(DuplicateDateError):
        service.save_report(
            "2024-01-15", [LineItem(name="Colour", amount=Decimal("80"))], []
        )

    stored = service.get_report_by_date("2024-01-15")
    assert stored.id == original.id
    assert stored.total_services == "50.00"
    assert [item.name for item in stored.services] == ["Haircut", "Shave"]


def test_save_report_validates_input(service: ReportService) -> None:
    with pytest.raises(ValidationError) as excinfo:
        service.save_report(
            "15-01-2024",
            [LineItem(name=" ", amount=Decimal("1"))],
            [LineItem(name="Rent", amount=Decimal("-2"))],
        )

    assert excinfo.value.errors == {
        "date": "Date is required and must be YYYY-MM-DD",
        "services.0.name": "Service name is required",
        "expenses.0.amount": "Amount must be positive",
    }
    assert service.list_reports() == []


def test_online_payment_cannot_exceed_services(service: ReportService) -> None:
    with pytest.raises(ValidationError) as excinfo:
        service.save_report(
            "2024-01-15", _services(), _expenses(), online_payment=Decimal("50.01")
        )

    assert excinfo.value.errors == {
        "onlinePayment": "Online payment cannot exceed total services"
    }


def test_save_payload_ignores_client_totals(
    service: ReportService, caplog: pytest.LogCaptureFixture
) -> None:
    payload = {
        "date": "2024-01-15",
        "services": [{"name": "Haircut", "amount": 20}, {"name": "Shave", "amount": "30"}],
        "expenses": [{"name": "Supplies", "amount": 5}],
        "totalServices": "999.00",
        "onlinePayment": 10,
    }

    with caplog.at_level(logging.WARNING, logger="adsc_reports_web.services"):
        saved = service.save_payload(payload)

    assert saved.total_services == "50.00"
    assert saved.online_payment == "10.00"
    assert saved.cash_payment == "40.00"
    assert "differs from computed" in caplog.text


def test_save_payload_surfaces_field_errors(service: ReportService) -> None:
    with pytest.raises(ValidationError) as excinfo:
        service.save_payload({"date": "2024-01-15", "services": [{"name": "Cut"}]})

    assert excinfo.value.errors == {"services.0.amount": "Amount must be a valid number"}


def test_missing_reports_raise_not_found(service: ReportService) -> None:
    with pytest.raises(NotFoundError, match="Report not found"):
        service.get_report(uuid4().hex)
    with pytest.raises(NotFoundError, match="Report not found for this date"):
        service.get_report_by_date("2024-01-15")


def test_update_is_sparse_by_default(service: ReportService, admin) -> None:
    saved = service.save_report("2024-01-15", _services(), _expenses())

    updated = service.update_report(saved.id, {"totalServices": "60"}, admin)

    assert updated.total_services == "60.00"
    assert updated.net_profit == "45.00"
    assert updated.services == saved.services


def test_update_with_recompute_derives_totals(service: ReportService, admin) -> None:
    saved = service.save_report(
        "2024-01-15", _services(), _expenses(), online_payment=Decimal("10")
    )

    updated = service.update_report(
        saved.id,
        {"expenses": [{"name": "Rent", "amount": "15.50"}], "netProfit": "1"},
        admin,
        recompute=True,
    )

    assert updated.total_services == "50.00"
    assert updated.total_expenses == "15.50"
    assert updated.net_profit == "34.50"
    assert updated.cash_payment == "40.00"


def test_update_requires_authorization(anonymous) -> None:
    repository = RecordingRepository()
    service = ReportService(repository, SessionAuthGate())

    with pytest.raises(UnauthorizedError):
        service.update_report(uuid4().hex, {"totalServices": 1}, anonymous)

    assert repository.calls == []


def test_update_rejects_malformed_patch(service: ReportService, admin) -> None:
    saved = service.save_report("2024-01-15", _services(), _expenses())

    with pytest.raises(ValidationError):
        service.update_report(saved.id, {"services": None}, admin)


def test_update_missing_report_raises(service: ReportService, admin) -> None:
    with pytest.raises(NotFoundError):
        service.update_report(uuid4().hex, {"totalServices": 1}, admin)


def test_unauthorized_delete_never_reaches_repository(anonymous) -> None:
    repository = RecordingRepository()
    service = ReportService(repository, SessionAuthGate())

    with pytest.raises(UnauthorizedError):
        service.delete_report(uuid4().hex, anonymous)
    with pytest.raises(UnauthorizedError):
        service.delete_report(uuid4().hex, None)

    assert repository.calls == []


def test_authorized_delete_removes_report(service: ReportService, admin) -> None:
    saved = service.save_report("2024-01-15", _services(), _expenses())

    service.delete_report(saved.id, admin)

    assert service.list_reports() == []
    with pytest.raises(NotFoundError):
        service.delete_report(saved.id, admin)


def test_save_report_rejects_oversized_amount(service: ReportService) -> None:
    with pytest.raises(ValidationError) as excinfo:
        service.save_report(
            "2024-01-15", [LineItem(name="Big", amount=Decimal("1e30"))], []
        )

    assert excinfo.value.errors == {"services.0.amount": "Amount is too large"}
    assert service.list_reports() == []


def test_save_report_rejects_totals_that_would_round(service: ReportService) -> None:
    services = [
        LineItem(name="Bulk", amount=Decimal("999999999999999")),
        LineItem(name="Dust", amount=Decimal("1e-99")),
    ]

    with pytest.raises(ValidationError) as excinfo:
        service.save_report("2024-01-15", services, [])

    assert excinfo.value.errors == {"amounts": "Amounts cannot be totalled exactly"}
    assert service.list_reports() == []


def test_save_report_totals_largest_amounts_exactly(service: ReportService) -> None:
    top = Decimal("999999999999999.99")

    saved = service.save_report(
        "2024-01-15",
        [LineItem(name="A", amount=top), LineItem(name="B", amount=top)],
        [LineItem(name="C", amount=Decimal("0.01"))],
    )

    assert saved.total_services == "1999999999999999.98"
    assert saved.net_profit == "1999999999999999.97"
