# Overview: Read-only Flask API route over the audit trail.

from flask import Blueprint, jsonify, request

from ..decorators import require_auth, require_role
from ..services import audit_service
from ..validation import ServiceError


audit_logs_bp = Blueprint("audit_logs", __name__, url_prefix="/api/audit-logs")


@audit_logs_bp.get("")
@require_auth
@require_role("ADMIN")
def list_audit_logs_route():
    try:
        result = audit_service.list_audit_logs(
            action=request.args.get("action"),
            entity=request.args.get("entity"),
            user_id=request.args.get("user_id", type=int),
            date_from=request.args.get("from"),
            date_to=request.args.get("to"),
            page=request.args.get("page", type=int),
            per_page=request.args.get("per_page", type=int),
        )
        return jsonify(result), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
