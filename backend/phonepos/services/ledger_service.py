# Overview: Inventory ledger adjustments; keeps Product.stock and IMEI status in step with sale/purchase lifecycle.

from __future__ import annotations

import logging

from ..extensions import db
from ..models import (
    Imei,
    ImeiStatus,
    Product,
    Purchase,
    PurchaseStatus,
    Sale,
    SaleStatus,
)
from ..validation import ConflictError, NotFoundError
from phonepos.time_utils import utcnow
from .concurrency import lock_for_update
from .lifecycle_service import assert_transition

"""
Inventory Ledger Invariants (authoritative)

    Trigger                          Stock per item      IMEI per item
    Sale created (-> COMPLETED)      -quantity           SOLD
    Sale voided  (COMPLETED->VOIDED) +quantity           IN_STOCK
    Sale refunded (->REFUNDED)       +quantity           IN_STOCK
    Purchase received (->RECEIVED)   +quantity           untouched

- Every adjustment runs inside the caller's transaction, together with the
  status write that triggers it. Nothing here commits.
- Product rows are read FOR UPDATE before their counter changes.
- Stock never goes below zero.
- A purchase already RECEIVED is never applied again.
"""

logger = logging.getLogger(__name__)


def adjust_stock(product_id: int, delta: int) -> Product:
    """Apply a signed quantity change to one product's stock counter."""
    product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
    if not product:
        raise NotFoundError(f"Product {product_id} not found")

    new_stock = product.stock + delta
    if new_stock < 0:
        raise ConflictError(
            f"Insufficient stock for {product.name}",
            details={"product_id": product.id, "stock": product.stock, "requested": -delta},
        )

    product.stock = new_stock
    return product


def set_imei_status(imei_id: int, status: ImeiStatus) -> Imei:
    imei = lock_for_update(db.session.query(Imei).filter_by(id=imei_id)).first()
    if not imei:
        raise NotFoundError(f"IMEI {imei_id} not found")
    imei.status = status
    return imei


def apply_sale_created(sale: Sale) -> None:
    """Take sold quantities out of stock and mark serialized units SOLD."""
    for item in sale.items:
        adjust_stock(item.product_id, -item.quantity)
        if item.imei_id:
            set_imei_status(item.imei_id, ImeiStatus.SOLD)

    db.session.flush()
    logger.info("Sale %s created: stock taken for %d item(s)", sale.invoice_no, len(sale.items))


def reverse_sale(sale: Sale, target: SaleStatus) -> Sale:
    """
    Move a COMPLETED sale to VOIDED or REFUNDED and put its items back.

    A sale that is already VOIDED or REFUNDED raises ConflictError and no
    stock or IMEI row is touched.
    """
    verb = "void" if target == SaleStatus.VOIDED else "refund"
    if sale.status != SaleStatus.COMPLETED:
        raise ConflictError(f"Cannot {verb} a {sale.status.value.lower()} sale")
    assert_transition("sale", sale.status, target)

    for item in sale.items:
        adjust_stock(item.product_id, item.quantity)
        if item.imei_id:
            set_imei_status(item.imei_id, ImeiStatus.IN_STOCK)

    sale.status = target
    sale.reversed_at = utcnow()
    db.session.flush()
    logger.info("Sale %s %s: stock restored", sale.invoice_no, target.value.lower())
    return sale


def apply_purchase_received(purchase: Purchase) -> bool:
    """
    Receive a purchase into stock.

    Returns False without side effects when the purchase is already
    RECEIVED, so a repeated receive never double-counts.
    """
    if purchase.status == PurchaseStatus.RECEIVED:
        return False
    assert_transition("purchase", purchase.status, PurchaseStatus.RECEIVED)

    for item in purchase.items:
        adjust_stock(item.product_id, item.quantity)

    purchase.status = PurchaseStatus.RECEIVED
    purchase.received_at = utcnow()
    db.session.flush()
    logger.info("Purchase %s received: %d item(s) added to stock", purchase.id, len(purchase.items))
    return True
