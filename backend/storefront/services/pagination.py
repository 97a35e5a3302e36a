from __future__ import annotations


def pagination_meta(page: int, limit: int, total: int) -> dict:
    pages = (total + limit - 1) // limit if total > 0 else 1
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": pages,
        "has_next": page < pages,
        "has_prev": page > 1,
    }


def paginate(query, page: int, limit: int) -> tuple[list, dict]:
    """Apply offset/limit to an ordered query; returns (rows, pagination dict)."""
    total = query.order_by(None).count()
    rows = query.offset((page - 1) * limit).limit(limit).all()
    return rows, pagination_meta(page, limit, total)
