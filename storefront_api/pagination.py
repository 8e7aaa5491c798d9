"""Pagination helpers shared by listing endpoints."""

import math
from typing import Any

from .types import Pagination


def to_int(value: Any, default: int) -> int:
    """Parse a query value as int, falling back to ``default``."""
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(str(value).strip())
    except ValueError:
        return default


def page_bounds(page: Any, limit: Any, default_limit: int = 20, max_limit: int = 50) -> tuple[int, int]:
    """Normalise page (>= 1) and limit (1..max_limit).

    Returns:
        Tuple of (page, limit).
    """
    page_num = max(1, to_int(page, 1))
    limit_num = min(max_limit, max(1, to_int(limit, default_limit)))
    return page_num, limit_num


def paginate(page: int, limit: int, total: int) -> Pagination:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": math.ceil(total / limit) if limit else 0,
    }


def row_to_dict(row: Any) -> dict[str, Any]:
    return dict(row._mapping)
