# Overview: Flask API routes for sales; parses input and returns JSON responses.

"""
Sales routes.

POST creates a COMPLETED sale with its invoice number and takes stock in
one transaction. Void and refund restore stock and are ADMIN only.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth, require_role
from ..services import sales_service
from ..validation import ServiceError


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.get("")
@require_auth
def list_sales_route():
    try:
        result = sales_service.list_sales(
            q=request.args.get("q"),
            status=request.args.get("status"),
            payment_method=request.args.get("payment_method"),
            customer_id=request.args.get("customer_id", type=int),
            date_from=request.args.get("from"),
            date_to=request.args.get("to"),
            page=request.args.get("page", type=int),
            per_page=request.args.get("per_page", type=int),
        )
        return jsonify(result), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@sales_bp.get("/<int:sale_id>")
@require_auth
def get_sale_route(sale_id: int):
    try:
        return jsonify({"sale": sales_service.get_sale(sale_id).to_dict()}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@sales_bp.post("")
@require_auth
def create_sale_route():
    """
    Body:
    {
      "customer_id": null,
      "payment_method": "CASH",
      "items": [{"product_id": 1, "quantity": 1, "unit_price_cents": 120000, "discount_cents": 0, "imei_id": 7}],
      "discount_cents": 0,
      "tax_cents": 0,
      "paid_cents": 120000,
      "note": null
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        sale = sales_service.create_sale(data, user_id=g.current_user.id)
        return jsonify({"sale": sale.to_dict()}), 201
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.put("/<int:sale_id>/void")
@require_auth
@require_role("ADMIN")
def void_sale_route(sale_id: int):
    data = request.get_json(silent=True) or {}
    try:
        sale = sales_service.void_sale(sale_id, user_id=g.current_user.id, reason=data.get("reason"))
        return jsonify({"sale": sale.to_dict()}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to void sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.put("/<int:sale_id>/refund")
@require_auth
@require_role("ADMIN")
def refund_sale_route(sale_id: int):
    data = request.get_json(silent=True) or {}
    try:
        sale = sales_service.refund_sale(sale_id, user_id=g.current_user.id, reason=data.get("reason"))
        return jsonify({"sale": sale.to_dict()}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to refund sale")
        return jsonify({"error": "Internal server error"}), 500
