# Overview: Bulk product import from .xlsx or .csv uploads.

"""
Product import.

Columns (header row, case-insensitive): Name, Brand, Model, Price, Barcode,
Stock, Category, and optionally Cost. Price and Cost are in major units and
stored as minor units (x100). Each row runs in its own savepoint: a bad row
is rolled back and reported, the rest of the file still imports. Unknown
categories are created on the fly. Opening stock is booked through the
ledger like any other stock movement.
"""

from __future__ import annotations

import csv
import io
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable

from openpyxl import load_workbook
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Product
from ..validation import MAX_PRICE_CENTS, ServiceError, ValidationError
from .concurrency import atomic
from .ledger_service import adjust_stock
from .products_service import MAX_OPENING_STOCK, get_or_create_category
from . import audit_service

logger = logging.getLogger(__name__)


REQUIRED_COLUMNS = ("name", "brand", "model", "price", "barcode")
EXCEL_EXTENSIONS = {"xlsx", "xlsm", "xltx", "xltm"}


def read_rows(stream, filename: str) -> list[dict[str, Any]]:
    """Turn an uploaded file into a list of header->value dicts."""
    ext = (filename or "").rsplit(".", 1)[-1].lower()

    if ext == "csv":
        text = stream.read()
        if isinstance(text, bytes):
            text = text.decode("utf-8-sig")
        return [dict(row) for row in csv.DictReader(io.StringIO(text))]

    if ext in EXCEL_EXTENSIONS:
        wb = load_workbook(stream, read_only=True, data_only=True)
        try:
            data = list(wb.active.values)
        finally:
            wb.close()
        if not data:
            return []
        headers = [str(h).strip() if h is not None else "" for h in data[0]]
        return [
            {headers[i]: row[i] for i in range(min(len(headers), len(row)))}
            for row in data[1:]
            if any(cell not in (None, "") for cell in row)
        ]

    raise ValidationError("Unsupported file format; upload .xlsx or .csv")


def _normalize_keys(row: dict[str, Any]) -> dict[str, Any]:
    return {str(k).strip().lower(): v for k, v in row.items() if k is not None}


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def _to_decimal(label: str, raw: str) -> Decimal:
    try:
        amount = Decimal(raw)
    except InvalidOperation:
        raise ValidationError(f"{label} must be a number")
    # NaN and Infinity parse but cannot become an integer
    if not amount.is_finite():
        raise ValidationError(f"{label} must be a number")
    return amount


def _to_cents(label: str, value: Any) -> int:
    amount = _to_decimal(label, _text(value))
    if amount < 0 or amount > Decimal(MAX_PRICE_CENTS) / 100:
        raise ValidationError(f"{label} is out of range")
    return int((amount * 100).to_integral_value())


def _to_stock(value: Any) -> int:
    raw = _text(value)
    if not raw:
        return 0
    amount = _to_decimal("Stock", raw)
    if amount != amount.to_integral_value():
        raise ValidationError("Stock must be a whole number")
    if amount < 0 or amount > MAX_OPENING_STOCK:
        raise ValidationError(f"Stock must be between 0 and {MAX_OPENING_STOCK}")
    return int(amount)


def _import_row(row: dict[str, Any]) -> Product:
    missing = [col.capitalize() for col in REQUIRED_COLUMNS if not _text(row.get(col))]
    if missing:
        raise ValidationError(f"Missing required fields ({', '.join(missing)})")

    barcode = _text(row["barcode"])
    if db.session.query(Product.id).filter_by(barcode=barcode).first():
        raise ValidationError(f"Product with barcode {barcode} already exists")

    category_name = _text(row.get("category"))
    category = get_or_create_category(category_name) if category_name else None

    product = Product(
        name=_text(row["name"]),
        brand=_text(row["brand"]),
        model=_text(row["model"]),
        barcode=barcode,
        price_cents=_to_cents("Price", row["price"]),
        cost_price_cents=_to_cents("Cost", row["cost"]) if _text(row.get("cost")) else 0,
        category_id=category.id if category else None,
        stock=0,
    )
    db.session.add(product)
    db.session.flush()

    opening = _to_stock(row.get("stock"))
    if opening:
        adjust_stock(product.id, opening)
    return product


def import_products(rows: Iterable[dict[str, Any]]) -> dict:
    """
    Import product rows; returns {success_count, fail_count, errors}.

    errors holds {"row": <1-based data row>, "barcode", "error"} per failure.
    """
    success_count = 0
    errors: list[dict] = []

    with atomic():
        for index, raw in enumerate(rows, start=1):
            row = _normalize_keys(raw)
            nested = db.session.begin_nested()
            try:
                product = _import_row(row)
                nested.commit()
            except ServiceError as e:
                nested.rollback()
                errors.append({"row": index, "barcode": _text(row.get("barcode")) or None, "error": e.message})
                continue
            except IntegrityError:
                nested.rollback()
                errors.append({"row": index, "barcode": _text(row.get("barcode")) or None, "error": "Row conflicts with an existing record"})
                continue
            success_count += 1
            logger.debug("Imported product %s (%s)", product.id, product.barcode)

        audit_service.record(
            action="product.imported",
            entity="product",
            entity_id=None,
            new_data={"success_count": success_count, "fail_count": len(errors)},
        )

    logger.info("Product import finished: %d imported, %d failed", success_count, len(errors))
    return {"success_count": success_count, "fail_count": len(errors), "errors": errors}
