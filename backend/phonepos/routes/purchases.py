# Overview: Flask API routes for supplier purchases; parses input and returns JSON responses.

"""
Purchase routes.

Receiving (POST /<id>/status {"status": "RECEIVED"}) adds stock exactly
once; a repeated receive returns 200 with the purchase unchanged.

SECURITY: reads are open to every signed-in user, writes require ADMIN.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth, require_role
from ..services import purchase_service
from ..validation import ServiceError


purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases")


@purchases_bp.get("")
@require_auth
def list_purchases_route():
    try:
        result = purchase_service.list_purchases(
            q=request.args.get("q"),
            status=request.args.get("status"),
            supplier_id=request.args.get("supplier_id", type=int),
            date_from=request.args.get("from"),
            date_to=request.args.get("to"),
            page=request.args.get("page", type=int),
            per_page=request.args.get("per_page", type=int),
        )
        return jsonify(result), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@purchases_bp.get("/<int:purchase_id>")
@require_auth
def get_purchase_route(purchase_id: int):
    try:
        return jsonify({"purchase": purchase_service.get_purchase(purchase_id).to_dict()}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@purchases_bp.post("")
@require_auth
@require_role("ADMIN")
def create_purchase_route():
    """
    Body:
    {
      "supplier_id": 1,
      "items": [{"product_id": 1, "quantity": 2, "unit_cost_cents": 50000, "imei_id": null}],
      "expenses": [{"label": "Delivery", "amount_cents": 2000}],
      "reduce_cents": 0,
      "payments": [{"method": "CASH", "amount_cents": 60000}],
      "note": "..."
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        purchase = purchase_service.create_purchase(data, user_id=g.current_user.id)
        return jsonify({"purchase": purchase.to_dict()}), 201
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create purchase")
        return jsonify({"error": "Internal server error"}), 500


@purchases_bp.put("/<int:purchase_id>")
@require_auth
@require_role("ADMIN")
def update_purchase_route(purchase_id: int):
    data = request.get_json(silent=True) or {}
    try:
        purchase = purchase_service.update_purchase(purchase_id, data)
        return jsonify({"purchase": purchase.to_dict()}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update purchase")
        return jsonify({"error": "Internal server error"}), 500


@purchases_bp.post("/<int:purchase_id>/status")
@require_auth
@require_role("ADMIN")
def change_purchase_status_route(purchase_id: int):
    data = request.get_json(silent=True) or {}
    try:
        purchase = purchase_service.change_status(purchase_id, data.get("status"))
        return jsonify({"purchase": purchase.to_dict()}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to change purchase status")
        return jsonify({"error": "Internal server error"}), 500


@purchases_bp.post("/<int:purchase_id>/payments")
@require_auth
@require_role("ADMIN")
def add_purchase_payment_route(purchase_id: int):
    data = request.get_json(silent=True) or {}
    try:
        purchase = purchase_service.add_payment(purchase_id, data)
        return jsonify({"purchase": purchase.to_dict()}), 201
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to add purchase payment")
        return jsonify({"error": "Internal server error"}), 500


@purchases_bp.delete("/<int:purchase_id>")
@require_auth
@require_role("ADMIN")
def delete_purchase_route(purchase_id: int):
    try:
        purchase_service.delete_purchase(purchase_id)
        return jsonify({"message": "Purchase deleted"}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete purchase")
        return jsonify({"error": "Internal server error"}), 500
