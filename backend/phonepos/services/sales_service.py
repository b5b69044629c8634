"""
Sales Service - one-step sale creation with ledger posting

A sale is created COMPLETED: header, items, invoice number and the stock
decrement all land in one transaction. Void and refund are the only
transitions and both put the goods back.

AMOUNTS (minor units, computed here, never trusted from the client):
    line_total = quantity * unit_price - line_discount
    subtotal   = sum(line_total)
    total      = subtotal - discount + tax
    change     = paid - total            (non-installment sales must pay in full)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from sqlalchemy import or_

from ..extensions import db
from ..models import (
    Customer,
    Imei,
    ImeiStatus,
    PaymentMethod,
    Product,
    Sale,
    SaleItem,
    SaleStatus,
)
from ..validation import (
    ConflictError,
    NotFoundError,
    ValidationError,
    optional_datetime,
    optional_int,
    optional_text,
    require_cents,
    require_enum,
    require_int,
    require_list,
)
from . import audit_service
from .concurrency import atomic, lock_for_update
from .document_service import next_invoice_number
from .ledger_service import apply_sale_created, reverse_sale
from .pagination import paginate


SELLABLE_IMEI_STATUSES = {ImeiStatus.IN_STOCK, ImeiStatus.RESERVED}


@dataclass(frozen=True)
class SaleItemInput:
    product_id: int
    quantity: int
    unit_price_cents: int | None
    discount_cents: int = 0
    imei_id: int | None = None

    @classmethod
    def from_payload(cls, raw: dict) -> "SaleItemInput":
        unit_price = raw.get("unit_price_cents")
        item = cls(
            product_id=require_int("product_id", raw.get("product_id"), minimum=1),
            quantity=require_int("quantity", raw.get("quantity"), minimum=1),
            unit_price_cents=None if unit_price in (None, "") else require_cents("unit_price_cents", unit_price),
            discount_cents=require_cents("discount_cents", raw.get("discount_cents"), default=0),
            imei_id=optional_int("imei_id", raw.get("imei_id"), minimum=1),
        )
        if item.imei_id and item.quantity != 1:
            raise ValidationError("Items with an IMEI must have quantity 1")
        return item


@dataclass(frozen=True)
class SaleInput:
    items: list[SaleItemInput]
    payment_method: PaymentMethod
    paid_cents: int
    discount_cents: int = 0
    tax_cents: int = 0
    customer_id: int | None = None
    note: str | None = None

    @classmethod
    def from_payload(cls, payload: dict) -> "SaleInput":
        payload = payload or {}
        items = [SaleItemInput.from_payload(entry) for entry in require_list("items", payload.get("items"))]

        imei_ids = [item.imei_id for item in items if item.imei_id]
        if len(imei_ids) != len(set(imei_ids)):
            raise ValidationError("The same IMEI appears on more than one item")

        return cls(
            items=items,
            payment_method=require_enum(PaymentMethod, "payment_method", payload.get("payment_method") or PaymentMethod.CASH),
            paid_cents=require_cents("paid_cents", payload.get("paid_cents")),
            discount_cents=require_cents("discount_cents", payload.get("discount_cents"), default=0),
            tax_cents=require_cents("tax_cents", payload.get("tax_cents"), default=0),
            customer_id=optional_int("customer_id", payload.get("customer_id"), minimum=1),
            note=optional_text(payload.get("note")),
        )


def _load_products(items: list[SaleItemInput]) -> dict[int, Product]:
    product_ids = {item.product_id for item in items}
    products = {
        p.id: p
        for p in lock_for_update(
            db.session.query(Product).filter(Product.id.in_(product_ids))
        ).all()
    }
    missing = sorted(pid for pid in product_ids if pid not in products or products[pid].is_deleted)
    if missing:
        raise NotFoundError("Product not found", details={"product_ids": missing})
    return products


def _validate_stock(items: list[SaleItemInput], products: dict[int, Product]) -> None:
    requested: dict[int, int] = {}
    for item in items:
        requested[item.product_id] = requested.get(item.product_id, 0) + item.quantity

    insufficient = [
        {
            "product_id": pid,
            "product_name": products[pid].name,
            "requested_quantity": qty,
            "stock": products[pid].stock,
        }
        for pid, qty in requested.items()
        if products[pid].stock < qty
    ]
    if insufficient:
        raise ConflictError("Insufficient stock to complete sale", details={"items": insufficient})


def _validate_imeis(items: list[SaleItemInput]) -> None:
    for item in items:
        if not item.imei_id:
            continue
        imei = lock_for_update(db.session.query(Imei).filter_by(id=item.imei_id)).first()
        if not imei:
            raise NotFoundError(f"IMEI {item.imei_id} not found")
        if imei.product_id != item.product_id:
            raise ValidationError(f"IMEI {imei.imei} does not belong to product {item.product_id}")
        if imei.status not in SELLABLE_IMEI_STATUSES:
            raise ConflictError(f"IMEI {imei.imei} is {imei.status.value} and cannot be sold")


def _build_items(data: SaleInput, products: dict[int, Product]) -> list[SaleItem]:
    lines = []
    for item in data.items:
        unit_price = item.unit_price_cents
        if unit_price is None:
            unit_price = products[item.product_id].price_cents
        if item.discount_cents > item.quantity * unit_price:
            raise ValidationError("Item discount cannot exceed the line amount")
        lines.append(
            SaleItem(
                product_id=item.product_id,
                imei_id=item.imei_id,
                quantity=item.quantity,
                unit_price_cents=unit_price,
                discount_cents=item.discount_cents,
            )
        )
    return lines


def get_sale(sale_id: int, *, for_update: bool = False) -> Sale:
    query = db.session.query(Sale).filter_by(id=sale_id)
    if for_update:
        query = lock_for_update(query)
    sale = query.first()
    if not sale:
        raise NotFoundError("Sale not found")
    return sale


def list_sales(
    *,
    q: str | None = None,
    status: str | None = None,
    payment_method: str | None = None,
    customer_id: int | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    query = db.session.query(Sale).outerjoin(Customer, Sale.customer_id == Customer.id)
    if q:
        like = f"%{q.strip()}%"
        query = query.filter(
            or_(Sale.invoice_no.ilike(like), Customer.name.ilike(like), Customer.phone.ilike(like))
        )
    if status:
        query = query.filter(Sale.status == require_enum(SaleStatus, "status", status))
    if payment_method:
        query = query.filter(Sale.payment_method == require_enum(PaymentMethod, "payment_method", payment_method))
    if customer_id:
        query = query.filter(Sale.customer_id == customer_id)
    start = optional_datetime("from", date_from)
    if start:
        query = query.filter(Sale.created_at >= start)
    end = optional_datetime("to", date_to)
    if end:
        query = query.filter(Sale.created_at <= end)
    query = query.order_by(Sale.created_at.desc(), Sale.id.desc())
    return paginate(query, page=page, per_page=per_page, serialize=lambda s: s.to_dict(include_items=False))


def create_sale(payload: dict, *, user_id: int, on_date: date | None = None) -> Sale:
    """
    Create a COMPLETED sale and take its items out of stock.

    Raises:
        ValidationError: bad items or amounts, underpayment
        NotFoundError: unknown product, IMEI or customer
        ConflictError: insufficient stock, IMEI not sellable
    """
    data = SaleInput.from_payload(payload)

    with atomic():
        if data.customer_id is not None:
            customer = db.session.get(Customer, data.customer_id)
            if not customer or customer.is_deleted:
                raise NotFoundError("Customer not found")

        products = _load_products(data.items)
        _validate_stock(data.items, products)
        _validate_imeis(data.items)

        items = _build_items(data, products)
        subtotal = sum(line.line_total_cents for line in items)
        if data.discount_cents > subtotal + data.tax_cents:
            raise ValidationError("Discount cannot exceed the sale amount")
        total = subtotal - data.discount_cents + data.tax_cents

        if data.payment_method != PaymentMethod.INSTALLMENT and data.paid_cents < total:
            raise ValidationError(
                f"Paid amount ({data.paid_cents}) is less than total ({total})",
                details={"paid_cents": data.paid_cents, "total_cents": total},
            )

        sale = Sale(
            invoice_no=next_invoice_number(on_date),
            customer_id=data.customer_id,
            user_id=user_id,
            status=SaleStatus.COMPLETED,
            payment_method=data.payment_method,
            subtotal_cents=subtotal,
            discount_cents=data.discount_cents,
            tax_cents=data.tax_cents,
            total_cents=total,
            paid_cents=data.paid_cents,
            change_cents=max(0, data.paid_cents - total),
            note=data.note,
        )
        sale.items = items
        db.session.add(sale)
        db.session.flush()

        apply_sale_created(sale)

        audit_service.record(
            action="sale.created", entity="sale", entity_id=sale.id, user_id=user_id, new_data=sale.to_dict()
        )
    return sale


def _reverse(sale_id: int, target: SaleStatus, *, user_id: int | None, reason: str | None) -> Sale:
    with atomic():
        sale = get_sale(sale_id, for_update=True)
        before_status = sale.status
        reverse_sale(sale, target)
        sale.reversed_by_user_id = user_id
        sale.reversal_reason = reason
        audit_service.record(
            action=f"sale.{target.value.lower()}",
            entity="sale",
            entity_id=sale.id,
            user_id=user_id,
            old_data={"status": before_status.value},
            new_data={"status": sale.status.value, "reason": reason},
        )
    return sale


def void_sale(sale_id: int, *, user_id: int | None = None, reason: str | None = None) -> Sale:
    """COMPLETED -> VOIDED, restoring stock and IMEIs. Fails on any other status."""
    return _reverse(sale_id, SaleStatus.VOIDED, user_id=user_id, reason=reason)


def refund_sale(sale_id: int, *, user_id: int | None = None, reason: str | None = None) -> Sale:
    """COMPLETED -> REFUNDED, restoring stock and IMEIs. Fails on any other status."""
    return _reverse(sale_id, SaleStatus.REFUNDED, user_id=user_id, reason=reason)
