# Overview: Supplier purchases: reconciliation math, receipt into stock, payments against credit.

"""
Purchase Service

RECONCILIATION (all integer minor units):
    items_total = sum(quantity * unit_cost)
    net_total   = items_total - reduce + sum(expenses.amount)
    credit      = max(0, net_total - paid)

paid may never exceed net_total; violations are rejected before anything is
written. Payments to the supplier are stored one row per method in
purchase_payments, apart from landed-cost expenses.

LIFECYCLE:
    PENDING -> RECEIVED   stock += quantity for each item, exactly once
    PENDING -> CANCELLED
Receiving an already RECEIVED purchase is a no-op. A RECEIVED purchase can
never be deleted; a PENDING purchase must be edited or cancelled instead.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import or_

from ..extensions import db
from ..models import (
    Imei,
    PaymentMethod,
    Product,
    Purchase,
    PurchaseExpense,
    PurchaseItem,
    PurchasePayment,
    PurchaseStatus,
    Supplier,
)
from ..validation import (
    GuardError,
    NotFoundError,
    ValidationError,
    optional_datetime,
    optional_int,
    optional_text,
    require_cents,
    require_enum,
    require_int,
    require_list,
    require_text,
)
from . import audit_service
from .concurrency import atomic, lock_for_update
from .ledger_service import apply_purchase_received
from .lifecycle_service import assert_transition
from .pagination import paginate


# -----------------------------------------------------------------------------
# Request contracts
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class PurchaseItemInput:
    product_id: int
    quantity: int
    unit_cost_cents: int
    imei_id: int | None = None

    @classmethod
    def from_payload(cls, raw: dict) -> "PurchaseItemInput":
        item = cls(
            product_id=require_int("product_id", raw.get("product_id"), minimum=1),
            quantity=require_int("quantity", raw.get("quantity"), minimum=1),
            unit_cost_cents=require_cents("unit_cost_cents", raw.get("unit_cost_cents")),
            imei_id=optional_int("imei_id", raw.get("imei_id"), minimum=1),
        )
        if item.imei_id and item.quantity != 1:
            raise ValidationError("Items with an IMEI must have quantity 1")
        return item


@dataclass(frozen=True)
class PurchaseExpenseInput:
    label: str
    amount_cents: int

    @classmethod
    def from_payload(cls, raw: dict) -> "PurchaseExpenseInput":
        return cls(
            label=require_text("label", raw.get("label"), max_length=128),
            amount_cents=require_cents("amount_cents", raw.get("amount_cents")),
        )


@dataclass(frozen=True)
class PurchasePaymentInput:
    method: PaymentMethod
    amount_cents: int
    note: str | None = None

    @classmethod
    def from_payload(cls, raw: dict) -> "PurchasePaymentInput":
        amount = require_cents("amount_cents", raw.get("amount_cents"))
        if amount <= 0:
            raise ValidationError("amount_cents must be > 0")
        return cls(
            method=require_enum(PaymentMethod, "method", raw.get("method") or PaymentMethod.CASH),
            amount_cents=amount,
            note=optional_text(raw.get("note"), max_length=255, key="note"),
        )


@dataclass(frozen=True)
class PurchaseTotals:
    items_total_cents: int
    reduce_cents: int
    expenses_total_cents: int
    total_cents: int
    paid_cents: int
    credit_cents: int


def reconcile(
    items: list[PurchaseItemInput] | list[PurchaseItem],
    *,
    reduce_cents: int = 0,
    expenses: list[PurchaseExpenseInput] | list[PurchaseExpense] = (),
    paid_cents: int = 0,
) -> PurchaseTotals:
    """Compute net payable and outstanding credit; raise ValidationError on bad terms."""
    items_total = sum(item.quantity * item.unit_cost_cents for item in items)
    expenses_total = sum(expense.amount_cents for expense in expenses)

    if reduce_cents < 0 or paid_cents < 0:
        raise ValidationError("Amounts must be >= 0")
    if reduce_cents > items_total + expenses_total:
        raise ValidationError(
            f"reduce_cents ({reduce_cents}) cannot exceed the purchase amount ({items_total + expenses_total})"
        )

    net_total = items_total - reduce_cents + expenses_total
    if paid_cents > net_total:
        raise ValidationError(
            f"Paid amount ({paid_cents}) cannot exceed net total ({net_total})",
            details={"paid_cents": paid_cents, "total_cents": net_total},
        )

    return PurchaseTotals(
        items_total_cents=items_total,
        reduce_cents=reduce_cents,
        expenses_total_cents=expenses_total,
        total_cents=net_total,
        paid_cents=paid_cents,
        credit_cents=max(0, net_total - paid_cents),
    )


def _parse_items(raw) -> list[PurchaseItemInput]:
    return [PurchaseItemInput.from_payload(entry) for entry in require_list("items", raw)]


def _parse_expenses(raw) -> list[PurchaseExpenseInput]:
    return [PurchaseExpenseInput.from_payload(entry) for entry in require_list("expenses", raw, allow_empty=True)]


def _parse_payments(payload: dict) -> list[PurchasePaymentInput]:
    """
    Accept either an explicit `payments` list or a single `paid_cents`
    (+ optional `payment_method`) shorthand.
    """
    if payload.get("payments") is not None:
        payments = [
            PurchasePaymentInput.from_payload(entry)
            for entry in require_list("payments", payload.get("payments"), allow_empty=True)
        ]
        if payload.get("paid_cents") not in (None, ""):
            declared = require_cents("paid_cents", payload.get("paid_cents"))
            if declared != sum(p.amount_cents for p in payments):
                raise ValidationError("paid_cents does not match the sum of payments")
        return payments

    paid = require_cents("paid_cents", payload.get("paid_cents"), default=0)
    if not paid:
        return []
    method = require_enum(PaymentMethod, "payment_method", payload.get("payment_method") or PaymentMethod.CASH)
    return [PurchasePaymentInput(method=method, amount_cents=paid)]


def _check_references(supplier_id: int, items: list[PurchaseItemInput]) -> None:
    supplier = db.session.get(Supplier, supplier_id)
    if not supplier or supplier.is_deleted:
        raise NotFoundError("Supplier not found")

    product_ids = {item.product_id for item in items}
    found = {
        row.id
        for row in db.session.query(Product.id).filter(
            Product.id.in_(product_ids), Product.is_deleted.is_(False)
        )
    }
    missing = sorted(product_ids - found)
    if missing:
        raise NotFoundError("Product not found", details={"product_ids": missing})

    for item in items:
        if item.imei_id is None:
            continue
        imei = db.session.get(Imei, item.imei_id)
        if not imei:
            raise NotFoundError(f"IMEI {item.imei_id} not found")
        if imei.product_id != item.product_id:
            raise ValidationError(f"IMEI {imei.imei} does not belong to product {item.product_id}")


def _apply_lines(
    purchase: Purchase,
    items: list[PurchaseItemInput],
    expenses: list[PurchaseExpenseInput],
) -> None:
    purchase.items = [
        PurchaseItem(
            product_id=item.product_id,
            quantity=item.quantity,
            unit_cost_cents=item.unit_cost_cents,
            imei_id=item.imei_id,
        )
        for item in items
    ]
    purchase.expenses = [
        PurchaseExpense(label=expense.label, amount_cents=expense.amount_cents)
        for expense in expenses
    ]


def _apply_totals(purchase: Purchase, totals: PurchaseTotals) -> None:
    purchase.items_total_cents = totals.items_total_cents
    purchase.reduce_cents = totals.reduce_cents
    purchase.expenses_total_cents = totals.expenses_total_cents
    purchase.total_cents = totals.total_cents
    purchase.paid_cents = totals.paid_cents
    purchase.credit_cents = totals.credit_cents


# -----------------------------------------------------------------------------
# Queries
# -----------------------------------------------------------------------------


def get_purchase(purchase_id: int, *, for_update: bool = False) -> Purchase:
    query = db.session.query(Purchase).filter_by(id=purchase_id)
    if for_update:
        query = lock_for_update(query)
    purchase = query.first()
    if not purchase:
        raise NotFoundError("Purchase not found")
    return purchase


def list_purchases(
    *,
    q: str | None = None,
    status: str | None = None,
    supplier_id: int | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    query = db.session.query(Purchase).join(Supplier, Purchase.supplier_id == Supplier.id)
    if q:
        like = f"%{q.strip()}%"
        query = query.filter(or_(Supplier.name.ilike(like), Purchase.note.ilike(like)))
    if status:
        query = query.filter(Purchase.status == require_enum(PurchaseStatus, "status", status))
    if supplier_id:
        query = query.filter(Purchase.supplier_id == supplier_id)
    start = optional_datetime("from", date_from)
    if start:
        query = query.filter(Purchase.created_at >= start)
    end = optional_datetime("to", date_to)
    if end:
        query = query.filter(Purchase.created_at <= end)
    query = query.order_by(Purchase.created_at.desc(), Purchase.id.desc())
    return paginate(query, page=page, per_page=per_page, serialize=lambda p: p.to_dict(include_lines=False))


# -----------------------------------------------------------------------------
# Commands
# -----------------------------------------------------------------------------


def create_purchase(payload: dict, *, user_id: int | None = None) -> Purchase:
    """
    Create a PENDING purchase (header, items, expenses, payments) in one
    transaction. Stock is not touched until the purchase is received.
    """
    payload = payload or {}
    supplier_id = require_int("supplier_id", payload.get("supplier_id"), minimum=1)
    items = _parse_items(payload.get("items"))
    expenses = _parse_expenses(payload.get("expenses"))
    payments = _parse_payments(payload)
    reduce_cents = require_cents("reduce_cents", payload.get("reduce_cents"), default=0)

    totals = reconcile(
        items,
        reduce_cents=reduce_cents,
        expenses=expenses,
        paid_cents=sum(p.amount_cents for p in payments),
    )

    with atomic():
        _check_references(supplier_id, items)

        purchase = Purchase(
            supplier_id=supplier_id,
            status=PurchaseStatus.PENDING,
            note=optional_text(payload.get("note")),
            created_by_user_id=user_id,
        )
        _apply_lines(purchase, items, expenses)
        purchase.payments = [
            PurchasePayment(method=p.method, amount_cents=p.amount_cents, note=p.note) for p in payments
        ]
        _apply_totals(purchase, totals)

        db.session.add(purchase)
        db.session.flush()
        audit_service.record(action="purchase.created", entity="purchase", entity_id=purchase.id, new_data=purchase.to_dict())
    return purchase


def update_purchase(purchase_id: int, payload: dict) -> Purchase:
    """
    Edit a PENDING purchase's items, expenses, reduce amount or note and
    recompute its totals against the payments already recorded. A `status`
    key is applied after the edit in the same transaction, so a refused
    status change leaves the edit unsaved too.
    """
    payload = dict(payload or {})
    unknown = set(payload) - {"supplier_id", "items", "expenses", "reduce_cents", "note", "status"}
    if unknown:
        raise ValidationError(f"Field not allowed: {sorted(unknown)[0]}")

    status = payload.pop("status", None)
    target = require_enum(PurchaseStatus, "status", status) if status else None
    edits = payload

    with atomic():
        purchase = get_purchase(purchase_id, for_update=True)
        if edits:
            _apply_edits(purchase, edits)
        if target:
            _apply_status(purchase, target)
    return purchase


def _apply_edits(purchase: Purchase, edits: dict) -> None:
    if purchase.status != PurchaseStatus.PENDING:
        raise GuardError(f"Cannot edit a {purchase.status.value.lower()} purchase")
    before = purchase.to_dict()

    supplier_id = optional_int("supplier_id", edits.get("supplier_id"), minimum=1) or purchase.supplier_id
    items = _parse_items(edits["items"]) if "items" in edits else [
        PurchaseItemInput(i.product_id, i.quantity, i.unit_cost_cents, i.imei_id) for i in purchase.items
    ]
    expenses = _parse_expenses(edits["expenses"]) if "expenses" in edits else [
        PurchaseExpenseInput(e.label, e.amount_cents) for e in purchase.expenses
    ]
    reduce_cents = (
        require_cents("reduce_cents", edits["reduce_cents"], default=0)
        if "reduce_cents" in edits
        else purchase.reduce_cents
    )

    totals = reconcile(items, reduce_cents=reduce_cents, expenses=expenses, paid_cents=purchase.paid_cents)
    _check_references(supplier_id, items)

    purchase.supplier_id = supplier_id
    if "items" in edits or "expenses" in edits:
        _apply_lines(purchase, items, expenses)
    if "note" in edits:
        purchase.note = optional_text(edits["note"])
    _apply_totals(purchase, totals)

    db.session.flush()
    audit_service.record(
        action="purchase.updated", entity="purchase", entity_id=purchase.id,
        old_data=before, new_data=purchase.to_dict(),
    )


def _apply_status(purchase: Purchase, target: PurchaseStatus) -> None:
    before_status = purchase.status

    if target == PurchaseStatus.RECEIVED:
        if not apply_purchase_received(purchase):
            return
    else:
        assert_transition("purchase", purchase.status, target)
        purchase.status = target

    audit_service.record(
        action=f"purchase.{target.value.lower()}",
        entity="purchase",
        entity_id=purchase.id,
        old_data={"status": before_status.value},
        new_data={"status": purchase.status.value},
    )


def change_status(purchase_id: int, status) -> Purchase:
    """
    Move a purchase to RECEIVED or CANCELLED.

    RECEIVED increments stock once; asking again is a no-op that returns
    the purchase unchanged. Everything else follows the allow-list.
    """
    target = require_enum(PurchaseStatus, "status", status)

    with atomic():
        purchase = get_purchase(purchase_id, for_update=True)
        _apply_status(purchase, target)
    return purchase


def add_payment(purchase_id: int, payload: dict) -> Purchase:
    """Record a later payment to the supplier, reducing outstanding credit."""
    payment = PurchasePaymentInput.from_payload(payload or {})

    with atomic():
        purchase = get_purchase(purchase_id, for_update=True)
        if purchase.status == PurchaseStatus.CANCELLED:
            raise GuardError("Cannot add payments to a cancelled purchase")

        totals = reconcile(
            purchase.items,
            reduce_cents=purchase.reduce_cents,
            expenses=purchase.expenses,
            paid_cents=purchase.paid_cents + payment.amount_cents,
        )
        purchase.payments.append(
            PurchasePayment(method=payment.method, amount_cents=payment.amount_cents, note=payment.note)
        )
        _apply_totals(purchase, totals)

        db.session.flush()
        audit_service.record(
            action="purchase.payment_added",
            entity="purchase",
            entity_id=purchase.id,
            new_data={"method": payment.method.value, "amount_cents": payment.amount_cents},
        )
    return purchase


def delete_purchase(purchase_id: int) -> None:
    with atomic():
        purchase = get_purchase(purchase_id, for_update=True)
        if purchase.status == PurchaseStatus.RECEIVED:
            raise GuardError("Cannot delete a received purchase")
        audit_service.record(
            action="purchase.deleted", entity="purchase", entity_id=purchase.id, old_data=purchase.to_dict()
        )
        db.session.delete(purchase)
