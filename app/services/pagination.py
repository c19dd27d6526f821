"""Clamp page parameters and slice a query into one page with metadata."""

import math
from dataclasses import dataclass
from typing import Any

from sqlalchemy.orm import Query

DEFAULT_PAGE = 1
MIN_PER_PAGE = 1


@dataclass(frozen=True)
class Page:
    items: list[Any]
    total: int
    per_page: int
    current_page: int

    @property
    def last_page(self) -> int:
        return max(1, math.ceil(self.total / self.per_page))

    @property
    def first_item(self) -> int | None:
        if not self.items:
            return None
        return (self.current_page - 1) * self.per_page + 1

    @property
    def last_item(self) -> int | None:
        first = self.first_item
        if first is None:
            return None
        return first + len(self.items) - 1

    def meta(self) -> dict[str, int | None]:
        return {
            "total": self.total,
            "per_page": self.per_page,
            "current_page": self.current_page,
            "last_page": self.last_page,
            "from": self.first_item,
            "to": self.last_item,
        }


def clamp_per_page(per_page: int | None, default: int, maximum: int) -> int:
    """Missing -> default; otherwise bounded to [1, maximum]."""
    if per_page is None:
        return min(default, maximum)
    return min(max(int(per_page), MIN_PER_PAGE), maximum)


def clamp_page(page: int | None) -> int:
    if page is None:
        return DEFAULT_PAGE
    return max(int(page), DEFAULT_PAGE)


def paginate(query: Query, page: int, per_page: int) -> Page:
    """Run count + offset/limit for an already filtered and ordered query."""
    total = query.order_by(None).count()
    items = query.offset((page - 1) * per_page).limit(per_page).all()
    return Page(items=items, total=total, per_page=per_page, current_page=page)
