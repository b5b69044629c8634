from flask import Blueprint, jsonify, request

from ..decorators import require_auth, require_role
from ..services import reporting_service
from ..validation import ServiceError


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")
dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


@dashboard_bp.get("/stats")
@require_auth
def dashboard_stats():
    return jsonify(reporting_service.dashboard_stats()), 200


@reports_bp.get("/sales")
@require_auth
def sales_report():
    try:
        report = reporting_service.sales_report(
            date_from=request.args.get("from"),
            date_to=request.args.get("to"),
            group_by=request.args.get("group_by", "day"),
        )
        return jsonify(report), 200
    except ServiceError as exc:
        return jsonify(exc.to_dict()), exc.status_code


@reports_bp.get("/expenses")
@require_auth
def expense_report():
    try:
        report = reporting_service.expense_report(
            date_from=request.args.get("from"),
            date_to=request.args.get("to"),
        )
        return jsonify(report), 200
    except ServiceError as exc:
        return jsonify(exc.to_dict()), exc.status_code


@reports_bp.get("/profit-loss")
@require_auth
@require_role("ADMIN")
def profit_loss_report():
    try:
        report = reporting_service.profit_loss_report(
            date_from=request.args.get("from"),
            date_to=request.args.get("to"),
        )
        return jsonify(report), 200
    except ServiceError as exc:
        return jsonify(exc.to_dict()), exc.status_code


@reports_bp.get("/inventory")
@require_auth
def inventory_report():
    return jsonify(reporting_service.inventory_report()), 200
