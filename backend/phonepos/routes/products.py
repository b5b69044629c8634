# Overview: Flask API routes for products and categories; parses input and returns JSON responses.

# backend/phonepos/routes/products.py
"""
Catalog routes.

SECURITY: All routes require authentication.
- Read operations are open to every role
- Write operations and spreadsheet import require ADMIN
"""
from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_auth, require_role
from ..services import import_service, products_service
from ..validation import ServiceError

products_bp = Blueprint("products", __name__, url_prefix="/api/products")
categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")


# -----------------------------------------------------------------------------
# Categories
# -----------------------------------------------------------------------------


@categories_bp.get("")
@require_auth
def list_categories_route():
    return jsonify(products_service.list_categories()), 200


@categories_bp.post("")
@require_auth
@require_role("ADMIN")
def create_category_route():
    data = request.get_json(silent=True) or {}
    try:
        category = products_service.create_category(data.get("name"))
        return jsonify({"category": category.to_dict()}), 201
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create category")
        return jsonify({"error": "Internal server error"}), 500


@categories_bp.put("/<int:category_id>")
@require_auth
@require_role("ADMIN")
def update_category_route(category_id: int):
    data = request.get_json(silent=True) or {}
    try:
        category = products_service.update_category(category_id, data.get("name"))
        return jsonify({"category": category.to_dict()}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update category")
        return jsonify({"error": "Internal server error"}), 500


@categories_bp.delete("/<int:category_id>")
@require_auth
@require_role("ADMIN")
def delete_category_route(category_id: int):
    try:
        products_service.delete_category(category_id)
        return jsonify({"message": "Category deleted"}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete category")
        return jsonify({"error": "Internal server error"}), 500


# -----------------------------------------------------------------------------
# Products
# -----------------------------------------------------------------------------


@products_bp.get("")
@require_auth
def list_products_route():
    """
    Query params:
    - q: search name/brand/model/barcode
    - category_id: int
    - low_stock: int, stock <= N
    - sort_by: name|brand|price_cents|stock|created_at, sort_order: asc|desc
    - page, per_page (default 20, max 100)
    """
    try:
        result = products_service.list_products(
            q=request.args.get("q"),
            category_id=request.args.get("category_id", type=int),
            low_stock=request.args.get("low_stock", type=int),
            sort_by=request.args.get("sort_by"),
            sort_order=request.args.get("sort_order"),
            page=request.args.get("page", type=int),
            per_page=request.args.get("per_page", type=int),
        )
        return jsonify(result), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    try:
        product = products_service.get_product(product_id)
        return jsonify({"product": product.to_dict()}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@products_bp.post("")
@require_auth
@require_role("ADMIN")
def create_product_route():
    payload = request.get_json(silent=True) or {}
    try:
        product = products_service.create_product(payload)
        return jsonify({"product": product.to_dict()}), 201
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.put("/<int:product_id>")
@require_auth
@require_role("ADMIN")
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        product = products_service.update_product(product_id, payload)
        return jsonify({"product": product.to_dict()}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.delete("/<int:product_id>")
@require_auth
@require_role("ADMIN")
def delete_product_route(product_id: int):
    try:
        products_service.delete_product(product_id)
        return jsonify({"message": "Product deleted"}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.post("/import")
@require_auth
@require_role("ADMIN")
def import_products_route():
    """Multipart upload, field "file" (.xlsx or .csv)."""
    if "file" not in request.files:
        return jsonify({"error": "file is required"}), 400

    file = request.files["file"]
    try:
        rows = import_service.read_rows(file.stream, file.filename or "")
        result = import_service.import_products(rows)
        return jsonify(result), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to import products")
        return jsonify({"error": "Failed to parse upload"}), 400
