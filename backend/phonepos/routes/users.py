# Overview: Flask API routes for staff accounts; ADMIN only.

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth, require_role
from ..services import auth_service
from ..validation import ServiceError


users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("")
@require_auth
@require_role("ADMIN")
def list_users_route():
    result = auth_service.list_users(
        q=request.args.get("q"),
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )
    return jsonify(result), 200


@users_bp.post("")
@require_auth
@require_role("ADMIN")
def create_user_route():
    data = request.get_json(silent=True) or {}
    try:
        user = auth_service.create_user(
            name=data.get("name"),
            phone=data.get("phone"),
            password=data.get("password"),
            role=data.get("role") or "SELLER",
            status=data.get("status") or "ACTIVE",
        )
        return jsonify({"user": user.to_dict()}), 201
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create user")
        return jsonify({"error": "Internal server error"}), 500


@users_bp.put("/<int:user_id>")
@require_auth
@require_role("ADMIN")
def update_user_route(user_id: int):
    data = request.get_json(silent=True) or {}
    try:
        user = auth_service.update_user(user_id, data)
        return jsonify({"user": user.to_dict()}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update user")
        return jsonify({"error": "Internal server error"}), 500


@users_bp.delete("/<int:user_id>")
@require_auth
@require_role("ADMIN")
def delete_user_route(user_id: int):
    """
    Hard delete. Refused for the last ADMIN, for the caller's own account,
    and for users with recorded sales or purchases.
    """
    try:
        auth_service.delete_user(user_id, acting_user_id=g.current_user.id)
        return jsonify({"message": "User deleted"}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete user")
        return jsonify({"error": "Internal server error"}), 500
