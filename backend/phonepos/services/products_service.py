# backend/phonepos/services/products_service.py
"""
Catalog service: categories and products.

Stock is never written here. Opening stock given at creation goes through
ledger_service.adjust_stock like every other stock movement, and product
updates reject a `stock` field outright.
"""
from __future__ import annotations

from sqlalchemy import func, or_

from ..extensions import db
from ..models import Category, Product
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    optional_int,
    require_text,
    validate_payload,
)
from . import audit_service
from .concurrency import atomic
from .ledger_service import adjust_stock
from .pagination import paginate


MAX_OPENING_STOCK = 10_000

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "brand", "model", "barcode", "price_cents", "cost_price_cents", "category_id"},
    required_on_create={"name", "price_cents"},
)

SORTABLE_FIELDS = {
    "name": Product.name,
    "brand": Product.brand,
    "price_cents": Product.price_cents,
    "stock": Product.stock,
    "created_at": Product.created_at,
}


# -----------------------------------------------------------------------------
# Categories
# -----------------------------------------------------------------------------


def list_categories() -> dict:
    categories = db.session.query(Category).order_by(Category.name.asc()).all()
    return {"items": [c.to_dict() for c in categories], "count": len(categories)}


def _category_name_taken(name: str, exclude_id: int | None = None) -> bool:
    query = db.session.query(Category.id).filter(func.lower(Category.name) == name.lower())
    if exclude_id is not None:
        query = query.filter(Category.id != exclude_id)
    return query.first() is not None


def create_category(name: str) -> Category:
    name = require_text("name", name, max_length=128)
    with atomic():
        if _category_name_taken(name):
            raise ConflictError("Category with this name already exists")
        category = Category(name=name)
        db.session.add(category)
        db.session.flush()
        audit_service.record(action="category.created", entity="category", entity_id=category.id, new_data=category.to_dict())
    return category


def get_or_create_category(name: str) -> Category:
    """Case-insensitive lookup; creates the category if missing. Does not commit."""
    existing = db.session.query(Category).filter(func.lower(Category.name) == name.lower()).first()
    if existing:
        return existing
    category = Category(name=name)
    db.session.add(category)
    db.session.flush()
    return category


def update_category(category_id: int, name: str) -> Category:
    name = require_text("name", name, max_length=128)
    with atomic():
        category = db.session.get(Category, category_id)
        if not category:
            raise NotFoundError("Category not found")
        if _category_name_taken(name, exclude_id=category.id):
            raise ConflictError("Category with this name already exists")
        category.name = name
    return category


def delete_category(category_id: int) -> None:
    with atomic():
        category = db.session.get(Category, category_id)
        if not category:
            raise NotFoundError("Category not found")
        in_use = db.session.query(Product.id).filter(Product.category_id == category.id).first()
        if in_use:
            raise ConflictError("Cannot delete category with existing products")
        audit_service.record(action="category.deleted", entity="category", entity_id=category.id, old_data=category.to_dict())
        db.session.delete(category)


# -----------------------------------------------------------------------------
# Products
# -----------------------------------------------------------------------------


def get_product(product_id: int, *, include_deleted: bool = False) -> Product:
    product = db.session.get(Product, product_id)
    if not product or (product.is_deleted and not include_deleted):
        raise NotFoundError("Product not found")
    return product


def list_products(
    *,
    q: str | None = None,
    category_id: int | None = None,
    low_stock: int | None = None,
    sort_by: str | None = None,
    sort_order: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Search products by name/brand/model/barcode with optional category and
    low-stock (stock <= N) filters. Soft-deleted products are excluded.
    """
    query = db.session.query(Product).filter(Product.is_deleted.is_(False))
    if q:
        like = f"%{q.strip()}%"
        query = query.filter(
            or_(
                Product.name.ilike(like),
                Product.brand.ilike(like),
                Product.model.ilike(like),
                Product.barcode.ilike(like),
            )
        )
    if category_id:
        query = query.filter(Product.category_id == category_id)
    if low_stock is not None:
        query = query.filter(Product.stock <= low_stock)

    if sort_by in SORTABLE_FIELDS:
        column = SORTABLE_FIELDS[sort_by]
        ordering = column.desc() if sort_order == "desc" else column.asc()
    else:
        ordering = Product.created_at.desc()
    query = query.order_by(ordering, Product.id.desc())

    return paginate(query, page=page, per_page=per_page)


def _check_barcode(barcode: str | None, exclude_id: int | None = None) -> None:
    if not barcode:
        return
    query = db.session.query(Product.id).filter(Product.barcode == barcode)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first():
        raise ConflictError("Product with this barcode already exists")


def _check_category(category_id: int | None) -> None:
    if category_id is not None and not db.session.get(Category, category_id):
        raise NotFoundError("Category not found")


def create_product(payload: dict) -> Product:
    """
    Create product from a JSON payload.

    `stock` is accepted here only as opening stock and is booked through
    the ledger in the same transaction.
    """
    payload = dict(payload or {})
    opening_stock = optional_int("stock", payload.pop("stock", None), minimum=0) or 0
    if opening_stock > MAX_OPENING_STOCK:
        raise ValidationError(f"stock cannot exceed {MAX_OPENING_STOCK}")

    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)

    with atomic():
        _check_barcode(patch.get("barcode"))
        _check_category(patch.get("category_id"))

        product = Product(stock=0, **patch)
        db.session.add(product)
        db.session.flush()

        if opening_stock:
            adjust_stock(product.id, opening_stock)

        audit_service.record(action="product.created", entity="product", entity_id=product.id, new_data=product.to_dict())
    return product


def update_product(product_id: int, payload: dict) -> Product:
    payload = dict(payload or {})
    if "stock" in payload:
        raise ValidationError("stock cannot be edited directly; record a purchase or sale instead")
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)

    with atomic():
        product = get_product(product_id)
        before = product.to_dict()
        if "barcode" in patch:
            _check_barcode(patch["barcode"], exclude_id=product.id)
        if "category_id" in patch:
            _check_category(patch["category_id"])
        for key, value in patch.items():
            setattr(product, key, value)
        db.session.flush()
        audit_service.record(
            action="product.updated", entity="product", entity_id=product.id, old_data=before, new_data=product.to_dict()
        )
    return product


def delete_product(product_id: int) -> None:
    """Soft delete: the row stays for sale/purchase history."""
    with atomic():
        product = get_product(product_id)
        product.is_deleted = True
        audit_service.record(action="product.deleted", entity="product", entity_id=product.id, old_data=product.to_dict())
