# Overview: Operating expenses and their categories.

from __future__ import annotations

from sqlalchemy import func, or_

from ..extensions import db
from ..models import Expense, ExpenseCategory
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    optional_datetime,
    require_text,
    validate_payload,
)
from phonepos.time_utils import utcnow
from . import audit_service
from .concurrency import atomic
from .pagination import paginate


EXPENSE_POLICY = ModelValidationPolicy(
    writable_fields={"title", "amount_cents", "category_id", "note", "date"},
    required_on_create={"title", "amount_cents"},
)


# -----------------------------------------------------------------------------
# Expense categories
# -----------------------------------------------------------------------------


def list_expense_categories() -> dict:
    rows = (
        db.session.query(ExpenseCategory, func.count(Expense.id))
        .outerjoin(Expense, Expense.category_id == ExpenseCategory.id)
        .group_by(ExpenseCategory.id)
        .order_by(ExpenseCategory.name.asc())
        .all()
    )
    items = [dict(category.to_dict(), expense_count=count) for category, count in rows]
    return {"items": items, "count": len(items)}


def create_expense_category(name: str) -> ExpenseCategory:
    name = require_text("name", name, max_length=100)
    with atomic():
        if db.session.query(ExpenseCategory.id).filter(func.lower(ExpenseCategory.name) == name.lower()).first():
            raise ConflictError("Category name already exists")
        category = ExpenseCategory(name=name)
        db.session.add(category)
        db.session.flush()
        audit_service.record(
            action="expense_category.created", entity="expense_category", entity_id=category.id, new_data=category.to_dict()
        )
    return category


def delete_expense_category(category_id: int) -> None:
    with atomic():
        category = db.session.get(ExpenseCategory, category_id)
        if not category:
            raise NotFoundError("Category not found")
        used = db.session.query(func.count(Expense.id)).filter(Expense.category_id == category.id).scalar()
        if used:
            raise ConflictError(f"Cannot delete: {used} expense(s) use this category")
        db.session.delete(category)
        audit_service.record(action="expense_category.deleted", entity="expense_category", entity_id=category_id)


# -----------------------------------------------------------------------------
# Expenses
# -----------------------------------------------------------------------------


def get_expense(expense_id: int) -> Expense:
    expense = db.session.get(Expense, expense_id)
    if not expense:
        raise NotFoundError("Expense not found")
    return expense


def list_expenses(
    *,
    q: str | None = None,
    category_id: int | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """Paged expenses plus total_amount_cents over every matching row."""
    query = db.session.query(Expense)
    if q:
        like = f"%{q.strip()}%"
        query = query.filter(or_(Expense.title.ilike(like), Expense.note.ilike(like)))
    if category_id:
        query = query.filter(Expense.category_id == category_id)
    start = optional_datetime("from", date_from)
    if start:
        query = query.filter(Expense.date >= start)
    end = optional_datetime("to", date_to)
    if end:
        query = query.filter(Expense.date <= end)

    total_amount = query.with_entities(func.coalesce(func.sum(Expense.amount_cents), 0)).scalar()

    result = paginate(query.order_by(Expense.date.desc(), Expense.id.desc()), page=page, per_page=per_page)
    result["total_amount_cents"] = int(total_amount or 0)
    return result


def _check_expense(patch: dict) -> None:
    if "amount_cents" in patch and not patch["amount_cents"]:
        raise ValidationError("amount_cents must be > 0")
    if patch.get("category_id") is not None and not db.session.get(ExpenseCategory, patch["category_id"]):
        raise NotFoundError("Category not found")


def create_expense(payload: dict, *, user_id: int | None = None) -> Expense:
    patch = validate_payload(model=Expense, payload=payload, policy=EXPENSE_POLICY, partial=False)
    with atomic():
        _check_expense(patch)
        patch.setdefault("date", utcnow())
        expense = Expense(created_by_user_id=user_id, **patch)
        db.session.add(expense)
        db.session.flush()
        audit_service.record(action="expense.created", entity="expense", entity_id=expense.id, new_data=expense.to_dict())
    return expense


def update_expense(expense_id: int, payload: dict) -> Expense:
    patch = validate_payload(model=Expense, payload=payload, policy=EXPENSE_POLICY, partial=True)
    with atomic():
        expense = get_expense(expense_id)
        before = expense.to_dict()
        _check_expense(patch)
        for key, value in patch.items():
            setattr(expense, key, value)
        db.session.flush()
        audit_service.record(
            action="expense.updated", entity="expense", entity_id=expense.id, old_data=before, new_data=expense.to_dict()
        )
    return expense


def delete_expense(expense_id: int) -> None:
    with atomic():
        expense = get_expense(expense_id)
        audit_service.record(action="expense.deleted", entity="expense", entity_id=expense.id, old_data=expense.to_dict())
        db.session.delete(expense)
