# Overview: Customers and suppliers; soft-deleted, searchable contact records.

from __future__ import annotations

from sqlalchemy import or_

from ..extensions import db
from ..models import Customer, Supplier
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    NotFoundError,
    require_phone,
    validate_payload,
)
from . import audit_service
from .concurrency import atomic
from .pagination import paginate


CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "phone", "email", "address", "note"},
    required_on_create={"name", "phone"},
)

SUPPLIER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "phone", "email", "address", "note"},
    required_on_create={"name"},
)


def _search(query, model, q: str | None):
    if q:
        like = f"%{q.strip()}%"
        query = query.filter(
            or_(model.name.ilike(like), model.phone.ilike(like), model.email.ilike(like))
        )
    return query


# -----------------------------------------------------------------------------
# Customers
# -----------------------------------------------------------------------------


def get_customer(customer_id: int) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if not customer or customer.is_deleted:
        raise NotFoundError("Customer not found")
    return customer


def list_customers(*, q: str | None = None, page: int | None = None, per_page: int | None = None) -> dict:
    query = db.session.query(Customer).filter(Customer.is_deleted.is_(False))
    query = _search(query, Customer, q).order_by(Customer.created_at.desc(), Customer.id.desc())
    return paginate(query, page=page, per_page=per_page)


def create_customer(payload: dict) -> tuple[Customer, bool]:
    """
    Create a customer, or bring back a soft-deleted one with the same phone.

    Returns (customer, reactivated). A live customer with the phone already
    on file is a ConflictError.
    """
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
    patch["phone"] = require_phone("phone", patch["phone"])

    with atomic():
        existing = db.session.query(Customer).filter_by(phone=patch["phone"]).first()
        if existing and not existing.is_deleted:
            raise ConflictError("Customer with this phone already exists")

        if existing:
            for key in CUSTOMER_POLICY.writable_fields:
                setattr(existing, key, patch.get(key))
            existing.is_deleted = False
            db.session.flush()
            audit_service.record(
                action="customer.reactivated", entity="customer", entity_id=existing.id, new_data=existing.to_dict()
            )
            return existing, True

        customer = Customer(**patch)
        db.session.add(customer)
        db.session.flush()
        audit_service.record(action="customer.created", entity="customer", entity_id=customer.id, new_data=customer.to_dict())
    return customer, False


def update_customer(customer_id: int, payload: dict) -> Customer:
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True)
    if "phone" in patch:
        patch["phone"] = require_phone("phone", patch["phone"])

    with atomic():
        customer = get_customer(customer_id)
        before = customer.to_dict()
        if "phone" in patch:
            clash = (
                db.session.query(Customer.id)
                .filter(Customer.phone == patch["phone"], Customer.id != customer.id)
                .first()
            )
            if clash:
                raise ConflictError("Phone number already in use by another customer")
        for key, value in patch.items():
            setattr(customer, key, value)
        db.session.flush()
        audit_service.record(
            action="customer.updated", entity="customer", entity_id=customer.id, old_data=before, new_data=customer.to_dict()
        )
    return customer


def delete_customer(customer_id: int) -> None:
    with atomic():
        customer = get_customer(customer_id)
        customer.is_deleted = True
        audit_service.record(action="customer.deleted", entity="customer", entity_id=customer.id)


# -----------------------------------------------------------------------------
# Suppliers
# -----------------------------------------------------------------------------


def get_supplier(supplier_id: int) -> Supplier:
    supplier = db.session.get(Supplier, supplier_id)
    if not supplier or supplier.is_deleted:
        raise NotFoundError("Supplier not found")
    return supplier


def list_suppliers(*, q: str | None = None, page: int | None = None, per_page: int | None = None) -> dict:
    query = db.session.query(Supplier).filter(Supplier.is_deleted.is_(False))
    query = _search(query, Supplier, q).order_by(Supplier.created_at.desc(), Supplier.id.desc())
    return paginate(query, page=page, per_page=per_page)


def create_supplier(payload: dict) -> Supplier:
    patch = validate_payload(model=Supplier, payload=payload, policy=SUPPLIER_POLICY, partial=False)
    with atomic():
        supplier = Supplier(**patch)
        db.session.add(supplier)
        db.session.flush()
        audit_service.record(action="supplier.created", entity="supplier", entity_id=supplier.id, new_data=supplier.to_dict())
    return supplier


def update_supplier(supplier_id: int, payload: dict) -> Supplier:
    patch = validate_payload(model=Supplier, payload=payload, policy=SUPPLIER_POLICY, partial=True)
    with atomic():
        supplier = get_supplier(supplier_id)
        before = supplier.to_dict()
        for key, value in patch.items():
            setattr(supplier, key, value)
        db.session.flush()
        audit_service.record(
            action="supplier.updated", entity="supplier", entity_id=supplier.id, old_data=before, new_data=supplier.to_dict()
        )
    return supplier


def delete_supplier(supplier_id: int) -> None:
    with atomic():
        supplier = get_supplier(supplier_id)
        supplier.is_deleted = True
        audit_service.record(action="supplier.deleted", entity="supplier", entity_id=supplier.id)
