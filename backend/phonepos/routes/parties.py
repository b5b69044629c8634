# Overview: Flask API routes for customers and suppliers; parses input and returns JSON responses.

"""
Contact routes.

SECURITY:
- Customers: any signed-in user may read, create and edit; delete is ADMIN only
- Suppliers: any signed-in user may read; writes are ADMIN only
"""

from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_auth, require_role
from ..services import party_service
from ..validation import ServiceError


customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")
suppliers_bp = Blueprint("suppliers", __name__, url_prefix="/api/suppliers")


# -----------------------------------------------------------------------------
# Customers
# -----------------------------------------------------------------------------


@customers_bp.get("")
@require_auth
def list_customers_route():
    result = party_service.list_customers(
        q=request.args.get("q"),
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )
    return jsonify(result), 200


@customers_bp.get("/<int:customer_id>")
@require_auth
def get_customer_route(customer_id: int):
    try:
        return jsonify({"customer": party_service.get_customer(customer_id).to_dict()}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@customers_bp.post("")
@require_auth
def create_customer_route():
    data = request.get_json(silent=True) or {}
    try:
        customer, reactivated = party_service.create_customer(data)
        return jsonify({"customer": customer.to_dict(), "reactivated": reactivated}), 201
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.put("/<int:customer_id>")
@require_auth
def update_customer_route(customer_id: int):
    data = request.get_json(silent=True) or {}
    try:
        customer = party_service.update_customer(customer_id, data)
        return jsonify({"customer": customer.to_dict()}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.delete("/<int:customer_id>")
@require_auth
@require_role("ADMIN")
def delete_customer_route(customer_id: int):
    try:
        party_service.delete_customer(customer_id)
        return jsonify({"message": "Customer deleted"}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete customer")
        return jsonify({"error": "Internal server error"}), 500


# -----------------------------------------------------------------------------
# Suppliers
# -----------------------------------------------------------------------------


@suppliers_bp.get("")
@require_auth
def list_suppliers_route():
    result = party_service.list_suppliers(
        q=request.args.get("q"),
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )
    return jsonify(result), 200


@suppliers_bp.get("/<int:supplier_id>")
@require_auth
def get_supplier_route(supplier_id: int):
    try:
        return jsonify({"supplier": party_service.get_supplier(supplier_id).to_dict()}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@suppliers_bp.post("")
@require_auth
@require_role("ADMIN")
def create_supplier_route():
    data = request.get_json(silent=True) or {}
    try:
        supplier = party_service.create_supplier(data)
        return jsonify({"supplier": supplier.to_dict()}), 201
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create supplier")
        return jsonify({"error": "Internal server error"}), 500


@suppliers_bp.put("/<int:supplier_id>")
@require_auth
@require_role("ADMIN")
def update_supplier_route(supplier_id: int):
    data = request.get_json(silent=True) or {}
    try:
        supplier = party_service.update_supplier(supplier_id, data)
        return jsonify({"supplier": supplier.to_dict()}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update supplier")
        return jsonify({"error": "Internal server error"}), 500


@suppliers_bp.delete("/<int:supplier_id>")
@require_auth
@require_role("ADMIN")
def delete_supplier_route(supplier_id: int):
    try:
        party_service.delete_supplier(supplier_id)
        return jsonify({"message": "Supplier deleted"}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete supplier")
        return jsonify({"error": "Internal server error"}), 500
