# Overview: Read-only dashboards and reports over sales, purchases, expenses and stock.

"""
Reporting service.

Only COMPLETED sales count as revenue; VOIDED and REFUNDED sales are
excluded everywhere. Cost of goods is the net total of RECEIVED purchases
in the period. All amounts are minor units.
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import (
    Customer,
    Expense,
    ExpenseCategory,
    Imei,
    Product,
    Purchase,
    PurchaseStatus,
    Sale,
    SaleStatus,
    Supplier,
)
from ..validation import ValidationError, optional_datetime
from phonepos.time_utils import day_bounds, month_start, to_utc_z, today, utcnow


GROUP_FORMATS = {
    "day": "%Y-%m-%d",
    "month": "%Y-%m",
}


def _range(date_from: str | None, date_to: str | None) -> tuple[datetime | None, datetime | None]:
    start = optional_datetime("from", date_from)
    end = optional_datetime("to", date_to)
    if start and end and end < start:
        raise ValidationError("'to' must not be before 'from'")
    return start, end


def _within(query, column, start: datetime | None, end: datetime | None):
    if start:
        query = query.filter(column >= start)
    if end:
        query = query.filter(column <= end)
    return query


def _low_stock_threshold() -> int:
    return int(current_app.config.get("LOW_STOCK_THRESHOLD", 5))


def _sales_totals(start: datetime | None = None, end: datetime | None = None) -> tuple[int, int]:
    query = db.session.query(
        func.count(Sale.id), func.coalesce(func.sum(Sale.total_cents), 0)
    ).filter(Sale.status == SaleStatus.COMPLETED)
    count, amount = _within(query, Sale.created_at, start, end).one()
    return int(count), int(amount)


def dashboard_stats() -> dict:
    now_day = today()
    day_start, day_end = day_bounds(now_day)
    first_of_month = month_start(now_day)

    monthly_count, monthly_amount = _sales_totals(first_of_month)
    today_count, today_amount = _sales_totals(day_start, day_end)

    monthly_expense_count, monthly_expense_amount = (
        db.session.query(func.count(Expense.id), func.coalesce(func.sum(Expense.amount_cents), 0))
        .filter(Expense.date >= first_of_month)
        .one()
    )

    live_products = db.session.query(Product).filter(Product.is_deleted.is_(False))
    recent_sales = db.session.query(Sale).order_by(Sale.created_at.desc(), Sale.id.desc()).limit(5).all()
    recent_expenses = db.session.query(Expense).order_by(Expense.date.desc(), Expense.id.desc()).limit(5).all()

    return {
        "overview": {
            "total_products": live_products.count(),
            "total_customers": db.session.query(Customer).filter(Customer.is_deleted.is_(False)).count(),
            "total_suppliers": db.session.query(Supplier).filter(Supplier.is_deleted.is_(False)).count(),
            "low_stock_products": live_products.filter(Product.stock <= _low_stock_threshold()).count(),
            "pending_purchases": db.session.query(Purchase).filter(Purchase.status == PurchaseStatus.PENDING).count(),
            "total_sales_count": _sales_totals()[0],
        },
        "monthly": {
            "sales_cents": monthly_amount,
            "sales_count": monthly_count,
            "expense_cents": int(monthly_expense_amount),
            "expense_count": int(monthly_expense_count),
            "profit_cents": monthly_amount - int(monthly_expense_amount),
        },
        "today": {
            "sales_cents": today_amount,
            "sales_count": today_count,
        },
        "recent_sales": [s.to_dict(include_items=False) for s in recent_sales],
        "recent_expenses": [e.to_dict() for e in recent_expenses],
    }


def sales_report(*, date_from: str | None = None, date_to: str | None = None, group_by: str = "day") -> dict:
    """
    COMPLETED sales in a range with per-period buckets.

    group_by is "day" (YYYY-MM-DD) or "month" (YYYY-MM).
    """
    fmt = GROUP_FORMATS.get(group_by or "day")
    if fmt is None:
        raise ValidationError("group_by must be day or month")
    start, end = _range(date_from, date_to)

    query = db.session.query(Sale).filter(Sale.status == SaleStatus.COMPLETED)
    sales = _within(query, Sale.created_at, start, end).order_by(Sale.created_at.desc(), Sale.id.desc()).all()

    grouped: dict[str, dict] = {}
    for sale in sales:
        key = sale.created_at.strftime(fmt)
        bucket = grouped.setdefault(key, {"period": key, "count": 0, "revenue_cents": 0})
        bucket["count"] += 1
        bucket["revenue_cents"] += sale.total_cents

    total_sales = sum(s.total_cents for s in sales)
    total_discount = sum(s.discount_cents for s in sales)
    total_tax = sum(s.tax_cents for s in sales)

    return {
        "summary": {
            "count": len(sales),
            "total_sales_cents": total_sales,
            "total_discount_cents": total_discount,
            "total_tax_cents": total_tax,
            "net_revenue_cents": total_sales - total_tax,
        },
        "grouped": [grouped[k] for k in sorted(grouped)],
        "sales": [s.to_dict(include_items=False) for s in sales],
    }


def expense_report(*, date_from: str | None = None, date_to: str | None = None) -> dict:
    start, end = _range(date_from, date_to)

    by_category = (
        db.session.query(
            func.coalesce(ExpenseCategory.name, "Uncategorized").label("category"),
            func.count(Expense.id).label("count"),
            func.coalesce(func.sum(Expense.amount_cents), 0).label("amount_cents"),
        )
        .select_from(Expense)
        .outerjoin(ExpenseCategory, Expense.category_id == ExpenseCategory.id)
    )
    rows = _within(by_category, Expense.date, start, end).group_by(ExpenseCategory.name).all()

    categories = sorted(
        ({"category": r.category, "count": int(r.count), "amount_cents": int(r.amount_cents)} for r in rows),
        key=lambda r: r["amount_cents"],
        reverse=True,
    )
    return {
        "summary": {
            "count": sum(c["count"] for c in categories),
            "total_expense_cents": sum(c["amount_cents"] for c in categories),
        },
        "by_category": categories,
    }


def profit_loss_report(*, date_from: str | None = None, date_to: str | None = None) -> dict:
    """
    gross_profit = net_revenue - cogs
    net_profit   = gross_profit - expenses

    net_revenue is the sum of COMPLETED sale totals (discounts already
    taken off) less tax collected.
    """
    start, end = _range(date_from, date_to)

    sales_q = db.session.query(
        func.count(Sale.id),
        func.coalesce(func.sum(Sale.subtotal_cents), 0),
        func.coalesce(func.sum(Sale.discount_cents), 0),
        func.coalesce(func.sum(Sale.tax_cents), 0),
        func.coalesce(func.sum(Sale.total_cents), 0),
    ).filter(Sale.status == SaleStatus.COMPLETED)
    sales_count, subtotal, discount, tax, total = _within(sales_q, Sale.created_at, start, end).one()

    purchase_q = db.session.query(
        func.count(Purchase.id), func.coalesce(func.sum(Purchase.total_cents), 0)
    ).filter(Purchase.status == PurchaseStatus.RECEIVED)
    purchase_count, cogs = _within(purchase_q, Purchase.received_at, start, end).one()

    expense_q = db.session.query(func.count(Expense.id), func.coalesce(func.sum(Expense.amount_cents), 0))
    expense_count, expenses = _within(expense_q, Expense.date, start, end).one()

    net_revenue = int(total) - int(tax)
    gross_profit = net_revenue - int(cogs)
    return {
        "revenue": {
            "gross_cents": int(subtotal),
            "discount_cents": int(discount),
            "tax_cents": int(tax),
            "net_cents": net_revenue,
            "sales_count": int(sales_count),
        },
        "costs": {"cogs_cents": int(cogs), "purchase_count": int(purchase_count)},
        "expenses": {"total_cents": int(expenses), "expense_count": int(expense_count)},
        "profit": {"gross_cents": gross_profit, "net_cents": gross_profit - int(expenses)},
    }


def inventory_report() -> dict:
    threshold = _low_stock_threshold()

    imei_counts = dict(
        db.session.query(Product.id, func.count(Imei.id))
        .outerjoin(Imei, Imei.product_id == Product.id)
        .group_by(Product.id)
        .all()
    )
    products = (
        db.session.query(Product)
        .filter(Product.is_deleted.is_(False))
        .order_by(Product.name.asc(), Product.id.asc())
        .all()
    )

    rows = [
        {
            "id": p.id,
            "name": p.name,
            "category": p.category.name if p.category else None,
            "stock": p.stock,
            "cost_price_cents": p.cost_price_cents,
            "price_cents": p.price_cents,
            "value_cents": p.stock * (p.cost_price_cents or 0),
            "imei_count": imei_counts.get(p.id, 0),
        }
        for p in products
    ]
    low_stock = [r for r in rows if 0 < r["stock"] <= threshold]

    status_breakdown = (
        db.session.query(Imei.status, func.count(Imei.id)).group_by(Imei.status).order_by(Imei.status).all()
    )

    return {
        "summary": {
            "total_products": len(rows),
            "total_stock": sum(r["stock"] for r in rows),
            "total_value_cents": sum(r["value_cents"] for r in rows),
            "low_stock_count": len(low_stock),
            "out_of_stock_count": sum(1 for r in rows if r["stock"] == 0),
            "low_stock_threshold": threshold,
        },
        "imei_status_breakdown": [{"status": status.value, "count": int(n)} for status, n in status_breakdown],
        "low_stock": low_stock,
        "products": rows,
        "generated_at": to_utc_z(utcnow()),
    }
