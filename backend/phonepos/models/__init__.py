from .enums import (
    Role, UserStatus, ImeiStatus, SaleStatus, PaymentMethod, PurchaseStatus,
    InstallmentStatus, RepairStatus, TradeInStatus, WarrantyType, WarrantyStatus,
)
from .catalog import Category, Product, Imei
from .parties import Customer, Supplier
from .purchases import Purchase, PurchaseItem, PurchaseExpense, PurchasePayment
from .sales import Sale, SaleItem, Installment, InstallmentPayment
from .aftersales import RepairOrder, TradeIn, Warranty
from .expenses import ExpenseCategory, Expense
from .auth import User, SessionToken
from .audit import AuditLog
from .documents import DocumentSequence

__all__ = [
    'Role', 'UserStatus', 'ImeiStatus', 'SaleStatus', 'PaymentMethod', 'PurchaseStatus',
    'InstallmentStatus', 'RepairStatus', 'TradeInStatus', 'WarrantyType', 'WarrantyStatus',
    'Category', 'Product', 'Imei',
    'Customer', 'Supplier',
    'Purchase', 'PurchaseItem', 'PurchaseExpense', 'PurchasePayment',
    'Sale', 'SaleItem', 'Installment', 'InstallmentPayment',
    'RepairOrder', 'TradeIn', 'Warranty',
    'ExpenseCategory', 'Expense',
    'User', 'SessionToken',
    'AuditLog',
    'DocumentSequence',
]
