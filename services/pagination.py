"""Page slicing for ranked result lists."""
from __future__ import annotations

from typing import Any, Dict, Sequence, TypeVar

T = TypeVar("T")


def paginate(results: Sequence[T], page: int, per_page: int) -> Dict[str, Any]:
    """Slice one page out of an already sorted list.

    `total` is always the full length; an out-of-range page is empty but still
    echoes the requested page and per_page.
    """
    if page < 1 or per_page < 1:
        raise ValueError("page and per_page must be >= 1")
    start = (page - 1) * per_page
    return {
        "total": len(results),
        "page": page,
        "per_page": per_page,
        "results": list(results[start:start + per_page]),
    }
