# Overview: Hire-purchase plans attached to a sale and the payments made against them.

from __future__ import annotations

import logging

from sqlalchemy import or_

from ..extensions import db
from ..models import Customer, Installment, InstallmentPayment, InstallmentStatus, Sale, SaleStatus
from ..validation import (
    ConflictError,
    NotFoundError,
    ValidationError,
    optional_datetime,
    optional_text,
    require_cents,
    require_enum,
    require_int,
)
from phonepos.time_utils import utcnow
from . import audit_service
from .concurrency import atomic, lock_for_update
from .lifecycle_service import assert_transition
from .pagination import paginate

logger = logging.getLogger(__name__)


def get_installment(installment_id: int, *, for_update: bool = False) -> Installment:
    query = db.session.query(Installment).filter_by(id=installment_id)
    if for_update:
        query = lock_for_update(query)
    installment = query.first()
    if not installment:
        raise NotFoundError("Installment not found")
    return installment


def list_installments(
    *,
    q: str | None = None,
    status: str | None = None,
    customer_id: int | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    query = db.session.query(Installment).join(Customer, Installment.customer_id == Customer.id)
    if q:
        like = f"%{q.strip()}%"
        query = query.filter(or_(Customer.name.ilike(like), Customer.phone.ilike(like)))
    if status:
        query = query.filter(Installment.status == require_enum(InstallmentStatus, "status", status))
    if customer_id:
        query = query.filter(Installment.customer_id == customer_id)
    query = query.order_by(Installment.created_at.desc(), Installment.id.desc())
    return paginate(query, page=page, per_page=per_page, serialize=lambda i: i.to_dict(include_payments=False))


def create_installment(payload: dict) -> Installment:
    """
    Open a plan for a completed sale.

    remaining starts at total - down_payment. A sale carries at most one plan.
    """
    payload = payload or {}
    sale_id = require_int("sale_id", payload.get("sale_id"), minimum=1)
    customer_id = require_int("customer_id", payload.get("customer_id"), minimum=1)
    total = require_cents("total_cents", payload.get("total_cents"))
    down_payment = require_cents("down_payment_cents", payload.get("down_payment_cents"), default=0)
    monthly = require_cents("monthly_cents", payload.get("monthly_cents"))
    total_months = require_int("total_months", payload.get("total_months"), minimum=1)
    start_date = optional_datetime("start_date", payload.get("start_date")) or utcnow()

    if total <= 0:
        raise ValidationError("total_cents must be > 0")
    if monthly <= 0:
        raise ValidationError("monthly_cents must be > 0")
    if down_payment > total:
        raise ValidationError("Down payment cannot exceed the total amount")

    with atomic():
        sale = db.session.get(Sale, sale_id)
        if not sale:
            raise NotFoundError("Sale not found")
        if sale.status != SaleStatus.COMPLETED:
            raise ConflictError(f"Cannot open an installment on a {sale.status.value.lower()} sale")
        customer = db.session.get(Customer, customer_id)
        if not customer or customer.is_deleted:
            raise NotFoundError("Customer not found")
        if db.session.query(Installment.id).filter_by(sale_id=sale.id).first():
            raise ConflictError("Installment already exists for this sale")

        installment = Installment(
            sale_id=sale.id,
            customer_id=customer.id,
            total_cents=total,
            down_payment_cents=down_payment,
            monthly_cents=monthly,
            total_months=total_months,
            remaining_cents=total - down_payment,
            start_date=start_date,
            status=InstallmentStatus.ACTIVE,
            note=optional_text(payload.get("note")),
        )
        if installment.remaining_cents == 0:
            installment.status = InstallmentStatus.COMPLETED
        db.session.add(installment)
        db.session.flush()
        audit_service.record(
            action="installment.created", entity="installment", entity_id=installment.id, new_data=installment.to_dict()
        )
    return installment


def add_payment(installment_id: int, payload: dict) -> InstallmentPayment:
    """
    Record a payment against an ACTIVE plan.

    remaining is clamped at zero; reaching zero completes the plan.
    """
    payload = payload or {}
    amount = require_cents("amount_cents", payload.get("amount_cents"))
    if amount <= 0:
        raise ValidationError("amount_cents must be > 0")

    with atomic():
        installment = get_installment(installment_id, for_update=True)
        if installment.status != InstallmentStatus.ACTIVE:
            raise ConflictError(
                f"Installment is {installment.status.value} and does not accept payments",
                details={"current_status": installment.status.value},
            )

        payment = InstallmentPayment(
            installment_id=installment.id,
            amount_cents=amount,
            note=optional_text(payload.get("note"), max_length=255, key="note"),
        )
        db.session.add(payment)

        before = installment.remaining_cents
        installment.remaining_cents = max(0, before - amount)
        if installment.remaining_cents == 0:
            installment.status = InstallmentStatus.COMPLETED
            logger.info("Installment %s settled", installment.id)

        db.session.flush()
        audit_service.record(
            action="installment.payment",
            entity="installment",
            entity_id=installment.id,
            old_data={"remaining_cents": before},
            new_data={"remaining_cents": installment.remaining_cents, "amount_cents": amount},
        )
    return payment


def change_status(installment_id: int, status) -> Installment:
    target = require_enum(InstallmentStatus, "status", status)
    with atomic():
        installment = get_installment(installment_id, for_update=True)
        if target == InstallmentStatus.COMPLETED and installment.remaining_cents > 0:
            raise ConflictError("Installment still has an outstanding balance")
        assert_transition("installment", installment.status, target)
        before = installment.status
        installment.status = target
        audit_service.record(
            action="installment.status",
            entity="installment",
            entity_id=installment.id,
            old_data={"status": before.value},
            new_data={"status": target.value},
        )
    return installment
