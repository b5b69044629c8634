# Overview: Flask API routes for installment plans; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_auth
from ..services import installment_service
from ..validation import ServiceError


installments_bp = Blueprint("installments", __name__, url_prefix="/api/installments")


@installments_bp.get("")
@require_auth
def list_installments_route():
    try:
        result = installment_service.list_installments(
            q=request.args.get("q"),
            status=request.args.get("status"),
            customer_id=request.args.get("customer_id", type=int),
            page=request.args.get("page", type=int),
            per_page=request.args.get("per_page", type=int),
        )
        return jsonify(result), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@installments_bp.get("/<int:installment_id>")
@require_auth
def get_installment_route(installment_id: int):
    try:
        installment = installment_service.get_installment(installment_id)
        return jsonify({"installment": installment.to_dict()}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@installments_bp.post("")
@require_auth
def create_installment_route():
    data = request.get_json(silent=True) or {}
    try:
        installment = installment_service.create_installment(data)
        return jsonify({"installment": installment.to_dict()}), 201
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create installment")
        return jsonify({"error": "Internal server error"}), 500


@installments_bp.post("/<int:installment_id>/payments")
@require_auth
def add_installment_payment_route(installment_id: int):
    data = request.get_json(silent=True) or {}
    try:
        payment = installment_service.add_payment(installment_id, data)
        installment = installment_service.get_installment(installment_id)
        return jsonify({"payment": payment.to_dict(), "installment": installment.to_dict()}), 201
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record installment payment")
        return jsonify({"error": "Internal server error"}), 500


@installments_bp.put("/<int:installment_id>/status")
@require_auth
def change_installment_status_route(installment_id: int):
    data = request.get_json(silent=True) or {}
    try:
        installment = installment_service.change_status(installment_id, data.get("status"))
        return jsonify({"installment": installment.to_dict()}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to change installment status")
        return jsonify({"error": "Internal server error"}), 500
