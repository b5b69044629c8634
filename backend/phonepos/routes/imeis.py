# Overview: Flask API routes for IMEI serials; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_auth, require_role
from ..services import imei_service
from ..validation import ServiceError


imeis_bp = Blueprint("imeis", __name__, url_prefix="/api/imeis")


@imeis_bp.get("")
@require_auth
def list_imeis_route():
    try:
        result = imei_service.list_imeis(
            q=request.args.get("q"),
            product_id=request.args.get("product_id", type=int),
            status=request.args.get("status"),
            page=request.args.get("page", type=int),
            per_page=request.args.get("per_page", type=int),
        )
        return jsonify(result), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@imeis_bp.post("")
@require_auth
@require_role("ADMIN")
def create_imei_route():
    data = request.get_json(silent=True) or {}
    try:
        imei = imei_service.create_imei(data)
        return jsonify({"imei": imei.to_dict()}), 201
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create IMEI")
        return jsonify({"error": "Internal server error"}), 500


@imeis_bp.post("/bulk")
@require_auth
@require_role("ADMIN")
def bulk_create_imeis_route():
    """Body: {"product_id": 1, "imeis": ["3520...", ...]}; all-or-nothing."""
    data = request.get_json(silent=True) or {}
    try:
        created = imei_service.bulk_create_imeis(data)
        return jsonify({"items": [i.to_dict() for i in created], "count": len(created)}), 201
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to bulk create IMEIs")
        return jsonify({"error": "Internal server error"}), 500


@imeis_bp.put("/<int:imei_id>")
@require_auth
@require_role("ADMIN")
def update_imei_route(imei_id: int):
    data = request.get_json(silent=True) or {}
    try:
        imei = imei_service.update_imei(imei_id, data)
        return jsonify({"imei": imei.to_dict()}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update IMEI")
        return jsonify({"error": "Internal server error"}), 500


@imeis_bp.delete("/<int:imei_id>")
@require_auth
@require_role("ADMIN")
def delete_imei_route(imei_id: int):
    try:
        imei_service.delete_imei(imei_id)
        return jsonify({"message": "IMEI deleted"}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete IMEI")
        return jsonify({"error": "Internal server error"}), 500
