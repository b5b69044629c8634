# Overview: Flask API routes for repairs, trade-ins and warranties.

from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_auth, require_role
from ..services import aftersales_service
from ..validation import ServiceError


repairs_bp = Blueprint("repairs", __name__, url_prefix="/api/repairs")
tradeins_bp = Blueprint("tradeins", __name__, url_prefix="/api/trade-ins")
warranties_bp = Blueprint("warranties", __name__, url_prefix="/api/warranties")


# -----------------------------------------------------------------------------
# Repairs
# -----------------------------------------------------------------------------


@repairs_bp.get("")
@require_auth
def list_repairs_route():
    try:
        result = aftersales_service.list_repairs(
            q=request.args.get("q"),
            status=request.args.get("status"),
            page=request.args.get("page", type=int),
            per_page=request.args.get("per_page", type=int),
        )
        return jsonify(result), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@repairs_bp.get("/<int:repair_id>")
@require_auth
def get_repair_route(repair_id: int):
    try:
        return jsonify({"repair": aftersales_service.get_repair(repair_id).to_dict()}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@repairs_bp.post("")
@require_auth
def create_repair_route():
    data = request.get_json(silent=True) or {}
    try:
        repair = aftersales_service.create_repair(data)
        return jsonify({"repair": repair.to_dict()}), 201
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create repair order")
        return jsonify({"error": "Internal server error"}), 500


@repairs_bp.put("/<int:repair_id>")
@require_auth
def update_repair_route(repair_id: int):
    data = request.get_json(silent=True) or {}
    try:
        repair = aftersales_service.update_repair(repair_id, data)
        return jsonify({"repair": repair.to_dict()}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update repair order")
        return jsonify({"error": "Internal server error"}), 500


# -----------------------------------------------------------------------------
# Trade-ins
# -----------------------------------------------------------------------------


@tradeins_bp.get("")
@require_auth
def list_trade_ins_route():
    try:
        result = aftersales_service.list_trade_ins(
            q=request.args.get("q"),
            status=request.args.get("status"),
            page=request.args.get("page", type=int),
            per_page=request.args.get("per_page", type=int),
        )
        return jsonify(result), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@tradeins_bp.post("")
@require_auth
def create_trade_in_route():
    data = request.get_json(silent=True) or {}
    try:
        trade_in = aftersales_service.create_trade_in(data)
        return jsonify({"trade_in": trade_in.to_dict()}), 201
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create trade-in")
        return jsonify({"error": "Internal server error"}), 500


@tradeins_bp.put("/<int:trade_in_id>")
@require_auth
def update_trade_in_route(trade_in_id: int):
    data = request.get_json(silent=True) or {}
    try:
        trade_in = aftersales_service.change_trade_in_status(trade_in_id, data.get("status"))
        return jsonify({"trade_in": trade_in.to_dict()}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update trade-in")
        return jsonify({"error": "Internal server error"}), 500


# -----------------------------------------------------------------------------
# Warranties
# -----------------------------------------------------------------------------


@warranties_bp.get("")
@require_auth
def list_warranties_route():
    try:
        result = aftersales_service.list_warranties(
            q=request.args.get("q"),
            status=request.args.get("status"),
            type=request.args.get("type"),
            page=request.args.get("page", type=int),
            per_page=request.args.get("per_page", type=int),
        )
        return jsonify(result), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@warranties_bp.post("")
@require_auth
def create_warranty_route():
    data = request.get_json(silent=True) or {}
    try:
        warranty = aftersales_service.create_warranty(data)
        return jsonify({"warranty": warranty.to_dict()}), 201
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create warranty")
        return jsonify({"error": "Internal server error"}), 500


@warranties_bp.put("/<int:warranty_id>")
@require_auth
def update_warranty_route(warranty_id: int):
    data = request.get_json(silent=True) or {}
    try:
        warranty = aftersales_service.change_warranty_status(warranty_id, data.get("status"))
        return jsonify({"warranty": warranty.to_dict()}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update warranty")
        return jsonify({"error": "Internal server error"}), 500


@warranties_bp.delete("/<int:warranty_id>")
@require_auth
@require_role("ADMIN")
def delete_warranty_route(warranty_id: int):
    try:
        aftersales_service.delete_warranty(warranty_id)
        return jsonify({"message": "Warranty deleted"}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete warranty")
        return jsonify({"error": "Internal server error"}), 500
