# Overview: Flask API routes for expenses and expense categories.

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth, require_role
from ..services import expense_service
from ..validation import ServiceError


expenses_bp = Blueprint("expenses", __name__, url_prefix="/api/expenses")


@expenses_bp.get("/categories")
@require_auth
def list_expense_categories_route():
    return jsonify(expense_service.list_expense_categories()), 200


@expenses_bp.post("/categories")
@require_auth
def create_expense_category_route():
    data = request.get_json(silent=True) or {}
    try:
        category = expense_service.create_expense_category(data.get("name"))
        return jsonify({"category": category.to_dict()}), 201
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create expense category")
        return jsonify({"error": "Internal server error"}), 500


@expenses_bp.delete("/categories/<int:category_id>")
@require_auth
@require_role("ADMIN")
def delete_expense_category_route(category_id: int):
    try:
        expense_service.delete_expense_category(category_id)
        return jsonify({"message": "Category deleted"}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete expense category")
        return jsonify({"error": "Internal server error"}), 500


@expenses_bp.get("")
@require_auth
def list_expenses_route():
    try:
        result = expense_service.list_expenses(
            q=request.args.get("q"),
            category_id=request.args.get("category_id", type=int),
            date_from=request.args.get("from"),
            date_to=request.args.get("to"),
            page=request.args.get("page", type=int),
            per_page=request.args.get("per_page", type=int),
        )
        return jsonify(result), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@expenses_bp.post("")
@require_auth
def create_expense_route():
    data = request.get_json(silent=True) or {}
    try:
        expense = expense_service.create_expense(data, user_id=g.current_user.id)
        return jsonify({"expense": expense.to_dict()}), 201
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create expense")
        return jsonify({"error": "Internal server error"}), 500


@expenses_bp.put("/<int:expense_id>")
@require_auth
def update_expense_route(expense_id: int):
    data = request.get_json(silent=True) or {}
    try:
        expense = expense_service.update_expense(expense_id, data)
        return jsonify({"expense": expense.to_dict()}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update expense")
        return jsonify({"error": "Internal server error"}), 500


@expenses_bp.delete("/<int:expense_id>")
@require_auth
@require_role("ADMIN")
def delete_expense_route(expense_id: int):
    try:
        expense_service.delete_expense(expense_id)
        return jsonify({"message": "Expense deleted"}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete expense")
        return jsonify({"error": "Internal server error"}), 500
