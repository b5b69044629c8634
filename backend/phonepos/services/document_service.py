# Overview: Day-scoped document numbers (invoices, repair tickets) backed by a sequence table.

from __future__ import annotations

from datetime import date

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentSequence, RepairOrder, Sale
from phonepos.time_utils import today


INVOICE_PREFIX = "INV"
REPAIR_TICKET_PREFIX = "RPR"
DEFAULT_PAD = 4


def sequence_key(prefix: str, on_date: date) -> str:
    return f"{prefix}-{on_date.strftime('%Y%m%d')}"


def format_document_number(key: str, number: int, pad: int = DEFAULT_PAD) -> str:
    """
    INV-20250101 + 7 -> "INV-20250101-0007".

    Past 10**pad - 1 the number simply grows wider ("INV-20250101-10000").
    """
    return f"{key}-{number:0{pad}d}"


def _highest_issued(column, key: str) -> int:
    """Largest trailing number already issued under key, 0 if none."""
    like = f"{key}-%"
    # Longest first, then lexicographic, so "...-10000" beats "...-9999"
    latest = (
        db.session.query(column)
        .filter(column.like(like))
        .order_by(func.length(column).desc(), column.desc())
        .limit(1)
        .scalar()
    )
    if not latest:
        return 0
    suffix = latest.rsplit("-", 1)[-1]
    return int(suffix) if suffix.isdigit() else 0


def _bump(key: str) -> int | None:
    stmt = (
        update(DocumentSequence)
        .where(DocumentSequence.prefix == key)
        .values(next_number=DocumentSequence.next_number + 1)
    )
    result = db.session.execute(stmt)
    if not result.rowcount:
        return None
    db.session.flush()
    current = (
        db.session.query(DocumentSequence.next_number)
        .filter_by(prefix=key)
        .scalar()
    )
    return current - 1


def next_document_number(
    *,
    prefix: str,
    column,
    on_date: date | None = None,
    pad: int = DEFAULT_PAD,
) -> str:
    """
    Allocate the next number for prefix on the given day.

    Runs inside the caller's transaction; the UPDATE takes the sequence row
    lock, so a concurrent allocation for the same day waits until the first
    transaction commits or rolls back. The first allocation of a day seeds the
    row from the highest number already stored in `column`.
    """
    key = sequence_key(prefix, on_date or today())

    number = _bump(key)
    if number is not None:
        return format_document_number(key, number, pad)

    start = _highest_issued(column, key) + 1
    try:
        with db.session.begin_nested():
            db.session.add(DocumentSequence(prefix=key, next_number=start + 1))
        number = start
    except IntegrityError:
        # Another transaction seeded the row first
        number = _bump(key)
        if number is None:
            raise

    return format_document_number(key, number, pad)


def next_invoice_number(on_date: date | None = None) -> str:
    return next_document_number(prefix=INVOICE_PREFIX, column=Sale.invoice_no, on_date=on_date)


def next_repair_ticket(on_date: date | None = None) -> str:
    return next_document_number(prefix=REPAIR_TICKET_PREFIX, column=RepairOrder.ticket_no, on_date=on_date)
