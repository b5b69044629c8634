from __future__ import annotations

from ..extensions import db
from phonepos.time_utils import to_utc_z
from .enums import PaymentMethod, PurchaseStatus, enum_column


class Purchase(db.Model):
    """
    Stock purchase from a supplier.

    LIFECYCLE:
        PENDING -> RECEIVED   (stock incremented once, here)
        PENDING -> CANCELLED

    AMOUNTS (minor units):
        items_total_cents    = sum(quantity * unit_cost_cents)
        total_cents          = items_total - reduce + expenses_total
        credit_cents         = max(0, total - paid)
    """
    __tablename__ = "purchases"
    __table_args__ = (
        db.Index("ix_purchases_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False, index=True)
    status = enum_column(PurchaseStatus, nullable=False, default=PurchaseStatus.PENDING, index=True)

    items_total_cents = db.Column(db.Integer, nullable=False, default=0)
    reduce_cents = db.Column(db.Integer, nullable=False, default=0)
    expenses_total_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False, default=0)
    paid_cents = db.Column(db.Integer, nullable=False, default=0)
    credit_cents = db.Column(db.Integer, nullable=False, default=0)

    note = db.Column(db.Text, nullable=True)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    received_at = db.Column(db.DateTime(timezone=True), nullable=True)

    supplier = db.relationship("Supplier", backref=db.backref("purchases", lazy=True))
    items = db.relationship(
        "PurchaseItem", backref="purchase", cascade="all, delete-orphan", order_by="PurchaseItem.id"
    )
    expenses = db.relationship(
        "PurchaseExpense", backref="purchase", cascade="all, delete-orphan", order_by="PurchaseExpense.id"
    )
    payments = db.relationship(
        "PurchasePayment", backref="purchase", cascade="all, delete-orphan", order_by="PurchasePayment.id"
    )

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier.name if self.supplier else None,
            "status": self.status.value,
            "items_total_cents": self.items_total_cents,
            "reduce_cents": self.reduce_cents,
            "expenses_total_cents": self.expenses_total_cents,
            "total_cents": self.total_cents,
            "paid_cents": self.paid_cents,
            "credit_cents": self.credit_cents,
            "note": self.note,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "received_at": to_utc_z(self.received_at),
        }
        if include_lines:
            data["items"] = [item.to_dict() for item in self.items]
            data["expenses"] = [expense.to_dict() for expense in self.expenses]
            data["payments"] = [payment.to_dict() for payment in self.payments]
        return data


class PurchaseItem(db.Model):
    __tablename__ = "purchase_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_purchase_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    imei_id = db.Column(db.Integer, db.ForeignKey("imeis.id"), nullable=True)
    quantity = db.Column(db.Integer, nullable=False)
    unit_cost_cents = db.Column(db.Integer, nullable=False)

    product = db.relationship("Product")

    @property
    def line_total_cents(self) -> int:
        return self.quantity * self.unit_cost_cents

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "imei_id": self.imei_id,
            "quantity": self.quantity,
            "unit_cost_cents": self.unit_cost_cents,
            "line_total_cents": self.line_total_cents,
        }


class PurchaseExpense(db.Model):
    """Landed cost added on top of the goods (transport, duty, ...)."""
    __tablename__ = "purchase_expenses"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id"), nullable=False, index=True)
    label = db.Column(db.String(128), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {"id": self.id, "label": self.label, "amount_cents": self.amount_cents}


class PurchasePayment(db.Model):
    """Money paid to the supplier against a purchase, one row per method."""
    __tablename__ = "purchase_payments"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_purchase_payments_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id"), nullable=False, index=True)
    method = enum_column(PaymentMethod, nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    note = db.Column(db.String(255), nullable=True)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "method": self.method.value,
            "amount_cents": self.amount_cents,
            "note": self.note,
            "paid_at": to_utc_z(self.paid_at),
        }
