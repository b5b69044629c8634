from __future__ import annotations

from ..extensions import db
from phonepos.time_utils import to_utc_z, utcnow
from .enums import RepairStatus, TradeInStatus, WarrantyStatus, WarrantyType, enum_column


class RepairOrder(db.Model):
    """Repair ticket for a customer's device (ticket_no e.g. "RPR-20250101-0001")."""
    __tablename__ = "repair_orders"
    __table_args__ = (
        db.Index("ix_repair_orders_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    ticket_no = db.Column(db.String(32), nullable=False, unique=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    imei_id = db.Column(db.Integer, db.ForeignKey("imeis.id"), nullable=True)

    device_info = db.Column(db.String(255), nullable=False)
    issue = db.Column(db.Text, nullable=False)
    diagnosis = db.Column(db.Text, nullable=True)
    repair_cost_cents = db.Column(db.Integer, nullable=False, default=0)

    status = enum_column(RepairStatus, nullable=False, default=RepairStatus.RECEIVED, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    delivered_at = db.Column(db.DateTime(timezone=True), nullable=True)

    customer = db.relationship("Customer")
    imei = db.relationship("Imei")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "ticket_no": self.ticket_no,
            "customer_id": self.customer_id,
            "customer_name": self.customer.name if self.customer else None,
            "imei_id": self.imei_id,
            "imei": self.imei.imei if self.imei else None,
            "device_info": self.device_info,
            "issue": self.issue,
            "diagnosis": self.diagnosis,
            "repair_cost_cents": self.repair_cost_cents,
            "status": self.status.value,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "completed_at": to_utc_z(self.completed_at),
            "delivered_at": to_utc_z(self.delivered_at),
        }


class TradeIn(db.Model):
    __tablename__ = "trade_ins"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    imei_id = db.Column(db.Integer, db.ForeignKey("imeis.id"), nullable=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True)

    device_name = db.Column(db.String(255), nullable=False)
    condition = db.Column(db.String(64), nullable=False)
    offered_price_cents = db.Column(db.Integer, nullable=False)
    note = db.Column(db.Text, nullable=True)

    status = enum_column(TradeInStatus, nullable=False, default=TradeInStatus.PENDING, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    customer = db.relationship("Customer")
    imei = db.relationship("Imei")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "customer_name": self.customer.name if self.customer else None,
            "imei_id": self.imei_id,
            "imei": self.imei.imei if self.imei else None,
            "product_id": self.product_id,
            "device_name": self.device_name,
            "condition": self.condition,
            "offered_price_cents": self.offered_price_cents,
            "note": self.note,
            "status": self.status.value,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Warranty(db.Model):
    """
    Warranty coverage for a product (optionally a specific IMEI).

    EXPIRED is never written; an ACTIVE warranty whose end_date has passed is
    reported as EXPIRED on read.
    """
    __tablename__ = "warranties"
    __table_args__ = (
        db.CheckConstraint("end_date >= start_date", name="ck_warranties_date_order"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    imei_id = db.Column(db.Integer, db.ForeignKey("imeis.id"), nullable=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)

    type = enum_column(WarrantyType, nullable=False)
    start_date = db.Column(db.DateTime(timezone=True), nullable=False)
    end_date = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    note = db.Column(db.Text, nullable=True)

    status = enum_column(WarrantyStatus, nullable=False, default=WarrantyStatus.ACTIVE, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    product = db.relationship("Product")
    imei = db.relationship("Imei")
    customer = db.relationship("Customer")

    @property
    def effective_status(self) -> WarrantyStatus:
        if self.status == WarrantyStatus.ACTIVE and self.end_date < utcnow():
            return WarrantyStatus.EXPIRED
        return self.status

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "imei_id": self.imei_id,
            "imei": self.imei.imei if self.imei else None,
            "customer_id": self.customer_id,
            "customer_name": self.customer.name if self.customer else None,
            "type": self.type.value,
            "start_date": to_utc_z(self.start_date),
            "end_date": to_utc_z(self.end_date),
            "note": self.note,
            "status": self.effective_status.value,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
