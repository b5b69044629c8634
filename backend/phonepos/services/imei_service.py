# Overview: Service-layer operations for IMEI serials; encapsulates business logic and database work.

"""
IMEI Service - serialized units of a product

UNIQUENESS: an IMEI string exists at most once across the whole catalog.

MANUAL STATUS EDITS: staff may move a unit between IN_STOCK, RESERVED,
DEFECTIVE, TRANSFERRED and TRADED_IN, but SOLD is owned by the sales ledger.
A unit can neither be marked SOLD by hand nor pulled out of SOLD except by
voiding or refunding its sale.
"""

from __future__ import annotations

from sqlalchemy import or_

from ..extensions import db
from ..models import Imei, ImeiStatus, Product, PurchaseItem, SaleItem
from ..validation import (
    ConflictError,
    GuardError,
    NotFoundError,
    ValidationError,
    optional_int,
    require_enum,
    require_int,
)
from . import audit_service
from .concurrency import atomic
from .pagination import paginate


IMEI_MIN_LENGTH = 15
IMEI_MAX_LENGTH = 20


def normalize_imei(value) -> str:
    """Strip whitespace; IMEIs are compared as exact strings."""
    text = str(value or "").strip().replace(" ", "")
    if not IMEI_MIN_LENGTH <= len(text) <= IMEI_MAX_LENGTH:
        raise ValidationError(
            f"IMEI must be between {IMEI_MIN_LENGTH} and {IMEI_MAX_LENGTH} characters"
        )
    return text


def get_imei(imei_id: int) -> Imei:
    imei = db.session.get(Imei, imei_id)
    if not imei:
        raise NotFoundError("IMEI not found")
    return imei


def _require_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if not product or product.is_deleted:
        raise NotFoundError("Product not found")
    return product


def list_imeis(
    *,
    q: str | None = None,
    product_id: int | None = None,
    status: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    query = db.session.query(Imei).join(Product, Imei.product_id == Product.id)
    if q:
        like = f"%{q.strip()}%"
        query = query.filter(
            or_(Imei.imei.ilike(like), Product.name.ilike(like), Product.barcode.ilike(like))
        )
    if product_id:
        query = query.filter(Imei.product_id == product_id)
    if status:
        query = query.filter(Imei.status == require_enum(ImeiStatus, "status", status))
    query = query.order_by(Imei.created_at.desc(), Imei.id.desc())
    return paginate(query, page=page, per_page=per_page)


def create_imei(payload: dict) -> Imei:
    value = normalize_imei(payload.get("imei"))
    product_id = require_int("product_id", payload.get("product_id"), minimum=1)
    status = require_enum(ImeiStatus, "status", payload.get("status") or ImeiStatus.IN_STOCK)
    if status == ImeiStatus.SOLD:
        raise ValidationError("New IMEIs cannot be created as SOLD")

    with atomic():
        _require_product(product_id)
        if db.session.query(Imei.id).filter_by(imei=value).first():
            raise ConflictError("IMEI already exists in the system")
        imei = Imei(imei=value, product_id=product_id, status=status)
        db.session.add(imei)
        db.session.flush()
        audit_service.record(action="imei.created", entity="imei", entity_id=imei.id, new_data=imei.to_dict())
    return imei


def bulk_create_imeis(payload: dict) -> list[Imei]:
    """
    Register many IN_STOCK units of one product at once.

    All-or-nothing: any duplicate (already stored, or repeated in the
    request) rejects the whole batch with the offending values listed.
    """
    product_id = require_int("product_id", payload.get("product_id"), minimum=1)
    raw = payload.get("imeis")
    if not isinstance(raw, list) or not raw:
        raise ValidationError("At least one IMEI is required")
    values = [normalize_imei(v) for v in raw]

    repeated = sorted({v for v in values if values.count(v) > 1})
    if repeated:
        raise ConflictError(
            f"Duplicate IMEIs found: {', '.join(repeated)}", details={"duplicates": repeated}
        )

    with atomic():
        _require_product(product_id)
        existing = sorted(
            row.imei for row in db.session.query(Imei.imei).filter(Imei.imei.in_(values))
        )
        if existing:
            raise ConflictError(
                f"Duplicate IMEIs found: {', '.join(existing)}", details={"duplicates": existing}
            )
        created = [Imei(imei=v, product_id=product_id, status=ImeiStatus.IN_STOCK) for v in values]
        db.session.add_all(created)
        db.session.flush()
        audit_service.record(
            action="imei.bulk_created",
            entity="product",
            entity_id=product_id,
            new_data={"imeis": values},
        )
    return created


def update_imei(imei_id: int, payload: dict) -> Imei:
    unknown = set(payload) - {"imei", "product_id", "status"}
    if unknown:
        raise ValidationError(f"Field not allowed: {sorted(unknown)[0]}")

    with atomic():
        imei = get_imei(imei_id)
        before = imei.to_dict()

        if payload.get("imei"):
            value = normalize_imei(payload["imei"])
            clash = db.session.query(Imei.id).filter(Imei.imei == value, Imei.id != imei.id).first()
            if clash:
                raise ConflictError("IMEI already exists")
            imei.imei = value

        product_id = optional_int("product_id", payload.get("product_id"), minimum=1)
        if product_id is not None and product_id != imei.product_id:
            if imei.status == ImeiStatus.SOLD:
                raise GuardError("Cannot move a sold IMEI to another product")
            _require_product(product_id)
            imei.product_id = product_id

        if payload.get("status"):
            status = require_enum(ImeiStatus, "status", payload["status"])
            if status != imei.status and ImeiStatus.SOLD in (status, imei.status):
                raise ConflictError(
                    f"Cannot change IMEI status from {imei.status.value} to {status.value}; "
                    "SOLD is set and cleared only by sales"
                )
            imei.status = status

        db.session.flush()
        audit_service.record(
            action="imei.updated", entity="imei", entity_id=imei.id, old_data=before, new_data=imei.to_dict()
        )
    return imei


def delete_imei(imei_id: int) -> None:
    with atomic():
        imei = get_imei(imei_id)
        if imei.status == ImeiStatus.SOLD:
            raise GuardError("Cannot delete a sold IMEI")
        referenced = (
            db.session.query(SaleItem.id).filter_by(imei_id=imei.id).first()
            or db.session.query(PurchaseItem.id).filter_by(imei_id=imei.id).first()
        )
        if referenced:
            raise ConflictError("IMEI appears on a sale or purchase and cannot be deleted")
        audit_service.record(action="imei.deleted", entity="imei", entity_id=imei.id, old_data=imei.to_dict())
        db.session.delete(imei)
