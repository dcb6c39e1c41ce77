"""Slice a merged collection into a requested page and compute its metadata."""

import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .errors import InvalidArgument
from .schemas import CollectionPage, PaginationMeta


@dataclass(frozen=True)
class PageRequest:
    page: int = 1
    per_page: int = 10

    def __post_init__(self) -> None:
        if self.page <= 0:
            raise InvalidArgument(f"page must be >= 1, got {self.page}")
        if self.per_page <= 0:
            raise InvalidArgument(f"per_page must be >= 1, got {self.per_page}")


def paginate(
    items: List[Dict[str, Any]], request: Optional[PageRequest]
) -> CollectionPage:
    """Return ``items`` whole (``meta=None``) or the requested slice.

    Out-of-range pages yield an empty slice, not an error.
    """
    if request is None:
        return CollectionPage(items=items, meta=None)

    total = len(items)
    start = (request.page - 1) * request.per_page
    end = start + request.per_page
    meta = PaginationMeta(
        current_page=request.page,
        per_page=request.per_page,
        total_items=total,
        total_pages=math.ceil(total / request.per_page),
        has_next_page=end < total,
        has_previous_page=request.page > 1,
    )
    return CollectionPage(items=items[start:end], meta=meta)
