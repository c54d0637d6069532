"""HTTP routes for saving, browsing and exporting daily reports."""

from __future__ import annotations

import json
from typing import Any

from flask import Blueprint, Response, current_app, jsonify, request
from flask_login import current_user, login_required

from .. import get_report_service
from ..config import TRUE_VALUES
from ..errors import ReportError, StorageUnavailableError, ValidationError
from ..exports import (
    ReportFilters,
    build_summary_export,
    export_filename,
    filter_reports,
    parse_filters,
    reports_to_csv,
    reports_to_json,
)

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.app_errorhandler(ReportError)
def handle_report_error(exc: ReportError) -> Any:
    """Translate service and repository errors into JSON responses."""

    if isinstance(exc, StorageUnavailableError):
        current_app.logger.error("Storage unavailable: %s", exc.__cause__ or exc)
    return jsonify(exc.to_dict()), exc.status_code


@reports_bp.post("")
def create_report() -> Any:
    """Save a new report for a date that has none yet."""

    saved = get_report_service().save_payload(request.get_json(silent=True))
    return jsonify(saved.to_dict())


@reports_bp.get("")
def list_reports() -> Any:
    """Return every report, newest date first."""

    reports = get_report_service().list_reports()
    return jsonify([report.to_dict() for report in reports])


@reports_bp.get("/<report_id>")
def get_report(report_id: str) -> Any:
    return jsonify(get_report_service().get_report(report_id).to_dict())


@reports_bp.get("/date/<date>")
def get_report_by_date(date: str) -> Any:
    return jsonify(get_report_service().get_report_by_date(date).to_dict())


@reports_bp.put("/<report_id>")
def update_report(report_id: str) -> Any:
    """Apply a sparse patch; ``?recompute=1`` rederives the totals."""

    recompute = request.args.get("recompute", "").strip().lower() in TRUE_VALUES
    updated = get_report_service().update_report(
        report_id,
        request.get_json(silent=True),
        current_user,
        recompute=recompute,
    )
    return jsonify({"success": True, "report": updated.to_dict()})


@reports_bp.delete("/<report_id>")
def delete_report(report_id: str) -> Any:
    get_report_service().delete_report(report_id, current_user)
    return jsonify({"success": True})


def _filtered_reports() -> tuple[ReportFilters, list]:
    filters, errors = parse_filters(request.args)
    if errors or filters is None:
        raise ValidationError(errors, "Invalid report filters.")
    reports = filter_reports(get_report_service().list_reports(), filters)
    return filters, reports


@reports_bp.get("/export.csv")
@login_required
def export_csv() -> Response:
    """Download the filtered reports as CSV."""

    _, reports = _filtered_reports()
    filename = export_filename("adsc-reports", "csv")
    return Response(
        reports_to_csv(reports),
        mimetype="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@reports_bp.get("/export.json")
@login_required
def export_json() -> Response:
    """Download the filtered reports as a JSON array."""

    _, reports = _filtered_reports()
    filename = export_filename("adsc-reports", "json")
    return Response(
        reports_to_json(reports),
        mimetype="application/json",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@reports_bp.get("/summary")
@login_required
def export_summary() -> Response:
    """Download analytics for the filtered reports."""

    filters, reports = _filtered_reports()
    filename = export_filename("adsc-summary", "json")
    return Response(
        json.dumps(build_summary_export(reports, filters), indent=2),
        mimetype="application/json",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )
