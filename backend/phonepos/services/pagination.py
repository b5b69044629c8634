# Overview: Shared page/per_page handling for list endpoints.

from __future__ import annotations

from typing import Any, Callable

DEFAULT_PER_PAGE = 20
MAX_PER_PAGE = 100


def paginate(
    query,
    *,
    page: int | None = None,
    per_page: int | None = None,
    serialize: Callable[[Any], dict] | None = None,
) -> dict:
    """
    Page a SQLAlchemy query.

    Returns {"items", "count", "pagination"} where pagination carries page,
    per_page, total, total_pages, has_next and has_prev. per_page defaults
    to 20 and is capped at 100.
    """
    serialize = serialize or (lambda obj: obj.to_dict())

    per_page = min(per_page or DEFAULT_PER_PAGE, MAX_PER_PAGE)
    per_page = max(per_page, 1)
    page = max(page or 1, 1)

    total = query.order_by(None).count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    rows = query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [serialize(row) for row in rows],
        "count": len(rows),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }
