from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    ADMIN = "ADMIN"
    SELLER = "SELLER"


class UserStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    SUSPENDED = "SUSPENDED"


class ImeiStatus(str, Enum):
    IN_STOCK = "IN_STOCK"
    SOLD = "SOLD"
    RESERVED = "RESERVED"
    DEFECTIVE = "DEFECTIVE"
    TRADED_IN = "TRADED_IN"
    TRANSFERRED = "TRANSFERRED"


class SaleStatus(str, Enum):
    COMPLETED = "COMPLETED"
    VOIDED = "VOIDED"
    REFUNDED = "REFUNDED"


class PaymentMethod(str, Enum):
    CASH = "CASH"
    BANK_TRANSFER = "BANK_TRANSFER"
    KPAY = "KPAY"
    WAVE_PAY = "WAVE_PAY"
    INSTALLMENT = "INSTALLMENT"
    OTHER = "OTHER"


class PurchaseStatus(str, Enum):
    PENDING = "PENDING"
    RECEIVED = "RECEIVED"
    CANCELLED = "CANCELLED"


class InstallmentStatus(str, Enum):
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    DEFAULTED = "DEFAULTED"


class RepairStatus(str, Enum):
    RECEIVED = "RECEIVED"
    DIAGNOSING = "DIAGNOSING"
    WAITING_PARTS = "WAITING_PARTS"
    REPAIRING = "REPAIRING"
    COMPLETED = "COMPLETED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class TradeInStatus(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    RESOLD = "RESOLD"


class WarrantyType(str, Enum):
    MANUFACTURER = "MANUFACTURER"
    SHOP = "SHOP"
    EXTENDED = "EXTENDED"


class WarrantyStatus(str, Enum):
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    CLAIMED = "CLAIMED"
    VOIDED = "VOIDED"


def enum_column(enum_cls: type[Enum], **kwargs):
    """String-backed enum column (CHECK constrained, portable across engines)."""
    from ..extensions import db

    return db.Column(
        db.Enum(
            enum_cls,
            native_enum=False,
            length=16,
            validate_strings=True,
            values_callable=lambda members: [m.value for m in members],
        ),
        **kwargs,
    )
