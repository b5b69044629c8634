# Overview: Repairs, trade-ins and warranties; the after-sales desk.

"""
After-sales service.

Every status change here goes through lifecycle_service.assert_transition.
Side effects of a transition:
- repair COMPLETED stamps completed_at, DELIVERED stamps delivered_at
- trade-in ACCEPTED marks the linked IMEI TRADED_IN (through the ledger helper)
- warranty EXPIRED is never written; list filters derive it from end_date
"""

from __future__ import annotations

from sqlalchemy import and_, or_

from ..extensions import db
from ..models import (
    Customer,
    Imei,
    ImeiStatus,
    Product,
    RepairOrder,
    RepairStatus,
    TradeIn,
    TradeInStatus,
    Warranty,
    WarrantyStatus,
    WarrantyType,
)
from ..validation import (
    NotFoundError,
    ValidationError,
    optional_int,
    optional_text,
    require_cents,
    require_datetime,
    require_enum,
    require_int,
    require_text,
)
from phonepos.time_utils import utcnow
from . import audit_service
from .concurrency import atomic, lock_for_update
from .document_service import next_repair_ticket
from .ledger_service import set_imei_status
from .lifecycle_service import assert_transition
from .pagination import paginate


def _require_customer(customer_id: int | None) -> Customer | None:
    if customer_id is None:
        return None
    customer = db.session.get(Customer, customer_id)
    if not customer or customer.is_deleted:
        raise NotFoundError("Customer not found")
    return customer


def _require_imei(imei_id: int | None) -> Imei | None:
    if imei_id is None:
        return None
    imei = db.session.get(Imei, imei_id)
    if not imei:
        raise NotFoundError("IMEI not found")
    return imei


def _require_product(product_id: int | None) -> Product | None:
    if product_id is None:
        return None
    product = db.session.get(Product, product_id)
    if not product or product.is_deleted:
        raise NotFoundError("Product not found")
    return product


# -----------------------------------------------------------------------------
# Repairs
# -----------------------------------------------------------------------------


def get_repair(repair_id: int, *, for_update: bool = False) -> RepairOrder:
    query = db.session.query(RepairOrder).filter_by(id=repair_id)
    if for_update:
        query = lock_for_update(query)
    repair = query.first()
    if not repair:
        raise NotFoundError("Repair order not found")
    return repair


def list_repairs(
    *,
    q: str | None = None,
    status: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    query = db.session.query(RepairOrder).join(Customer, RepairOrder.customer_id == Customer.id)
    if q:
        like = f"%{q.strip()}%"
        query = query.filter(
            or_(RepairOrder.ticket_no.ilike(like), Customer.name.ilike(like), RepairOrder.device_info.ilike(like))
        )
    if status:
        query = query.filter(RepairOrder.status == require_enum(RepairStatus, "status", status))
    query = query.order_by(RepairOrder.created_at.desc(), RepairOrder.id.desc())
    return paginate(query, page=page, per_page=per_page)


def create_repair(payload: dict) -> RepairOrder:
    payload = payload or {}
    customer_id = require_int("customer_id", payload.get("customer_id"), minimum=1)
    imei_id = optional_int("imei_id", payload.get("imei_id"), minimum=1)

    with atomic():
        _require_customer(customer_id)
        _require_imei(imei_id)
        repair = RepairOrder(
            ticket_no=next_repair_ticket(),
            customer_id=customer_id,
            imei_id=imei_id,
            device_info=require_text("device_info", payload.get("device_info"), max_length=255),
            issue=require_text("issue", payload.get("issue")),
            diagnosis=optional_text(payload.get("diagnosis")),
            repair_cost_cents=require_cents("repair_cost_cents", payload.get("repair_cost_cents"), default=0),
            status=RepairStatus.RECEIVED,
        )
        db.session.add(repair)
        db.session.flush()
        audit_service.record(action="repair.created", entity="repair", entity_id=repair.id, new_data=repair.to_dict())
    return repair


def update_repair(repair_id: int, payload: dict) -> RepairOrder:
    """Edit diagnosis/cost and optionally move the ticket along its workflow."""
    payload = payload or {}
    unknown = set(payload) - {"status", "diagnosis", "repair_cost_cents"}
    if unknown:
        raise ValidationError(f"Field not allowed: {sorted(unknown)[0]}")

    with atomic():
        repair = get_repair(repair_id, for_update=True)
        before = repair.to_dict()

        if "diagnosis" in payload:
            repair.diagnosis = optional_text(payload["diagnosis"])
        if "repair_cost_cents" in payload:
            repair.repair_cost_cents = require_cents("repair_cost_cents", payload["repair_cost_cents"])

        if payload.get("status"):
            target = require_enum(RepairStatus, "status", payload["status"])
            if target != repair.status:
                assert_transition("repair", repair.status, target)
                repair.status = target
                if target == RepairStatus.COMPLETED:
                    repair.completed_at = utcnow()
                elif target == RepairStatus.DELIVERED:
                    repair.delivered_at = utcnow()

        db.session.flush()
        audit_service.record(
            action="repair.updated", entity="repair", entity_id=repair.id, old_data=before, new_data=repair.to_dict()
        )
    return repair


# -----------------------------------------------------------------------------
# Trade-ins
# -----------------------------------------------------------------------------


def get_trade_in(trade_in_id: int, *, for_update: bool = False) -> TradeIn:
    query = db.session.query(TradeIn).filter_by(id=trade_in_id)
    if for_update:
        query = lock_for_update(query)
    trade_in = query.first()
    if not trade_in:
        raise NotFoundError("Trade-in not found")
    return trade_in


def list_trade_ins(
    *,
    q: str | None = None,
    status: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    query = db.session.query(TradeIn).outerjoin(Customer, TradeIn.customer_id == Customer.id)
    if q:
        like = f"%{q.strip()}%"
        query = query.filter(or_(TradeIn.device_name.ilike(like), Customer.name.ilike(like)))
    if status:
        query = query.filter(TradeIn.status == require_enum(TradeInStatus, "status", status))
    query = query.order_by(TradeIn.created_at.desc(), TradeIn.id.desc())
    return paginate(query, page=page, per_page=per_page)


def create_trade_in(payload: dict) -> TradeIn:
    payload = payload or {}
    customer_id = optional_int("customer_id", payload.get("customer_id"), minimum=1)
    imei_id = optional_int("imei_id", payload.get("imei_id"), minimum=1)
    product_id = optional_int("product_id", payload.get("product_id"), minimum=1)
    offered = require_cents("offered_price_cents", payload.get("offered_price_cents"))
    if offered <= 0:
        raise ValidationError("offered_price_cents must be > 0")

    with atomic():
        _require_customer(customer_id)
        _require_imei(imei_id)
        _require_product(product_id)
        trade_in = TradeIn(
            customer_id=customer_id,
            imei_id=imei_id,
            product_id=product_id,
            device_name=require_text("device_name", payload.get("device_name"), max_length=255),
            condition=require_text("condition", payload.get("condition"), max_length=64),
            offered_price_cents=offered,
            note=optional_text(payload.get("note")),
            status=TradeInStatus.PENDING,
        )
        db.session.add(trade_in)
        db.session.flush()
        audit_service.record(action="trade_in.created", entity="trade_in", entity_id=trade_in.id, new_data=trade_in.to_dict())
    return trade_in


def change_trade_in_status(trade_in_id: int, status) -> TradeIn:
    target = require_enum(TradeInStatus, "status", status)
    with atomic():
        trade_in = get_trade_in(trade_in_id, for_update=True)
        before = trade_in.status
        assert_transition("trade_in", trade_in.status, target)
        if target == TradeInStatus.ACCEPTED and trade_in.imei_id:
            set_imei_status(trade_in.imei_id, ImeiStatus.TRADED_IN)
        trade_in.status = target
        db.session.flush()
        audit_service.record(
            action="trade_in.status",
            entity="trade_in",
            entity_id=trade_in.id,
            old_data={"status": before.value},
            new_data={"status": target.value},
        )
    return trade_in


# -----------------------------------------------------------------------------
# Warranties
# -----------------------------------------------------------------------------


def get_warranty(warranty_id: int) -> Warranty:
    warranty = db.session.get(Warranty, warranty_id)
    if not warranty:
        raise NotFoundError("Warranty not found")
    return warranty


def list_warranties(
    *,
    q: str | None = None,
    status: str | None = None,
    type: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    query = (
        db.session.query(Warranty)
        .join(Product, Warranty.product_id == Product.id)
        .outerjoin(Customer, Warranty.customer_id == Customer.id)
        .outerjoin(Imei, Warranty.imei_id == Imei.id)
    )
    if q:
        like = f"%{q.strip()}%"
        query = query.filter(or_(Product.name.ilike(like), Customer.name.ilike(like), Imei.imei.ilike(like)))
    if status:
        wanted = require_enum(WarrantyStatus, "status", status)
        now = utcnow()
        if wanted == WarrantyStatus.EXPIRED:
            query = query.filter(and_(Warranty.status == WarrantyStatus.ACTIVE, Warranty.end_date < now))
        elif wanted == WarrantyStatus.ACTIVE:
            query = query.filter(and_(Warranty.status == WarrantyStatus.ACTIVE, Warranty.end_date >= now))
        else:
            query = query.filter(Warranty.status == wanted)
    if type:
        query = query.filter(Warranty.type == require_enum(WarrantyType, "type", type))
    query = query.order_by(Warranty.created_at.desc(), Warranty.id.desc())
    return paginate(query, page=page, per_page=per_page)


def create_warranty(payload: dict) -> Warranty:
    payload = payload or {}
    product_id = require_int("product_id", payload.get("product_id"), minimum=1)
    imei_id = optional_int("imei_id", payload.get("imei_id"), minimum=1)
    customer_id = optional_int("customer_id", payload.get("customer_id"), minimum=1)
    start = require_datetime("start_date", payload.get("start_date"))
    end = require_datetime("end_date", payload.get("end_date"))
    if end < start:
        raise ValidationError("end_date must not be before start_date")

    with atomic():
        _require_product(product_id)
        imei = _require_imei(imei_id)
        if imei and imei.product_id != product_id:
            raise ValidationError(f"IMEI {imei.imei} does not belong to product {product_id}")
        _require_customer(customer_id)
        warranty = Warranty(
            product_id=product_id,
            imei_id=imei_id,
            customer_id=customer_id,
            type=require_enum(WarrantyType, "type", payload.get("type")),
            start_date=start,
            end_date=end,
            note=optional_text(payload.get("note")),
            status=WarrantyStatus.ACTIVE,
        )
        db.session.add(warranty)
        db.session.flush()
        audit_service.record(action="warranty.created", entity="warranty", entity_id=warranty.id, new_data=warranty.to_dict())
    return warranty


def change_warranty_status(warranty_id: int, status) -> Warranty:
    target = require_enum(WarrantyStatus, "status", status)
    if target == WarrantyStatus.EXPIRED:
        raise ValidationError("EXPIRED is derived from end_date and cannot be set")

    with atomic():
        warranty = get_warranty(warranty_id)
        current = warranty.effective_status
        assert_transition("warranty", current, target)
        warranty.status = target
        db.session.flush()
        audit_service.record(
            action="warranty.status",
            entity="warranty",
            entity_id=warranty.id,
            old_data={"status": current.value},
            new_data={"status": target.value},
        )
    return warranty


def delete_warranty(warranty_id: int) -> None:
    with atomic():
        warranty = get_warranty(warranty_id)
        audit_service.record(action="warranty.deleted", entity="warranty", entity_id=warranty.id, old_data=warranty.to_dict())
        db.session.delete(warranty)
