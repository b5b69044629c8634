from __future__ import annotations

from ..extensions import db
from phonepos.time_utils import to_utc_z
from .enums import InstallmentStatus, PaymentMethod, SaleStatus, enum_column


class Sale(db.Model):
    """
    Completed sale to a customer.

    A sale is created already COMPLETED; the stock decrement happens in the
    same transaction as the insert. VOIDED and REFUNDED are terminal and
    restore the stock taken at creation.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable invoice number (e.g., "INV-20250101-0001")
    invoice_no = db.Column(db.String(32), nullable=False, unique=True)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    status = enum_column(SaleStatus, nullable=False, default=SaleStatus.COMPLETED, index=True)
    payment_method = enum_column(PaymentMethod, nullable=False, default=PaymentMethod.CASH)

    # All amounts in minor units
    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False, default=0)
    paid_cents = db.Column(db.Integer, nullable=False, default=0)
    change_cents = db.Column(db.Integer, nullable=False, default=0)

    note = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    # Void / refund audit trail
    reversed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    reversed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    reversal_reason = db.Column(db.String(255), nullable=True)

    customer = db.relationship("Customer", backref=db.backref("sales", lazy=True))
    user = db.relationship("User", foreign_keys=[user_id])
    items = db.relationship("SaleItem", backref="sale", cascade="all, delete-orphan", order_by="SaleItem.id")

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "invoice_no": self.invoice_no,
            "customer_id": self.customer_id,
            "customer_name": self.customer.name if self.customer else None,
            "user_id": self.user_id,
            "user_name": self.user.name if self.user else None,
            "status": self.status.value,
            "payment_method": self.payment_method.value,
            "subtotal_cents": self.subtotal_cents,
            "discount_cents": self.discount_cents,
            "tax_cents": self.tax_cents,
            "total_cents": self.total_cents,
            "paid_cents": self.paid_cents,
            "change_cents": self.change_cents,
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "reversed_by_user_id": self.reversed_by_user_id,
            "reversed_at": to_utc_z(self.reversed_at),
            "reversal_reason": self.reversal_reason,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class SaleItem(db.Model):
    __tablename__ = "sale_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_sale_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    imei_id = db.Column(db.Integer, db.ForeignKey("imeis.id"), nullable=True, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)

    product = db.relationship("Product")
    imei = db.relationship("Imei")

    @property
    def line_total_cents(self) -> int:
        return self.quantity * self.unit_price_cents - self.discount_cents

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "imei_id": self.imei_id,
            "imei": self.imei.imei if self.imei else None,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "discount_cents": self.discount_cents,
            "line_total_cents": self.line_total_cents,
        }


class Installment(db.Model):
    """Hire-purchase plan attached to exactly one sale."""
    __tablename__ = "installments"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, unique=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    total_cents = db.Column(db.Integer, nullable=False)
    down_payment_cents = db.Column(db.Integer, nullable=False, default=0)
    monthly_cents = db.Column(db.Integer, nullable=False)
    total_months = db.Column(db.Integer, nullable=False)
    remaining_cents = db.Column(db.Integer, nullable=False)

    start_date = db.Column(db.DateTime(timezone=True), nullable=False)
    status = enum_column(InstallmentStatus, nullable=False, default=InstallmentStatus.ACTIVE, index=True)
    note = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    sale = db.relationship("Sale", backref=db.backref("installment", uselist=False))
    customer = db.relationship("Customer")
    payments = db.relationship(
        "InstallmentPayment",
        backref="installment",
        cascade="all, delete-orphan",
        order_by="InstallmentPayment.id",
    )

    @property
    def paid_cents(self) -> int:
        return self.total_cents - self.remaining_cents

    def to_dict(self, include_payments: bool = True) -> dict:
        data = {
            "id": self.id,
            "sale_id": self.sale_id,
            "invoice_no": self.sale.invoice_no if self.sale else None,
            "customer_id": self.customer_id,
            "customer_name": self.customer.name if self.customer else None,
            "total_cents": self.total_cents,
            "down_payment_cents": self.down_payment_cents,
            "monthly_cents": self.monthly_cents,
            "total_months": self.total_months,
            "remaining_cents": self.remaining_cents,
            "paid_cents": self.paid_cents,
            "start_date": to_utc_z(self.start_date),
            "status": self.status.value,
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_payments:
            data["payments"] = [p.to_dict() for p in self.payments]
        return data


class InstallmentPayment(db.Model):
    __tablename__ = "installment_payments"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_installment_payments_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    installment_id = db.Column(db.Integer, db.ForeignKey("installments.id"), nullable=False, index=True)
    amount_cents = db.Column(db.Integer, nullable=False)
    note = db.Column(db.String(255), nullable=True)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "installment_id": self.installment_id,
            "amount_cents": self.amount_cents,
            "note": self.note,
            "paid_at": to_utc_z(self.paid_at),
        }
