"""
Generic table helpers used by every list endpoint: in-memory pagination and
column sorting over an already-fetched sequence.
"""

import math
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Generic, Literal, Optional, Sequence, TypeVar

T = TypeVar("T")

SortDirection = Literal["asc", "desc"]


def resolve_key(item: Any, key: str) -> Any:
    """
    Read `key` from a dict or an object. Dotted keys walk nested values
    ("settings.centerName"); a missing segment resolves to None.
    """
    value = item
    for part in key.split("."):
        if value is None:
            return None
        if isinstance(value, dict):
            value = value.get(part)
        else:
            value = getattr(value, part, None)
    return value


def comparable(value: Any) -> Any:
    """
    Normalise a value for comparisons and ordering. ISO date strings and
    datetimes compare as aware UTC datetimes.
    """
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, str) and len(value) >= 10 and value[4:5] == "-" and value[7:8] == "-":
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return value
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return value


def sort_key(value: Any) -> tuple:
    """
    Ordering key that never raises: numbers, then dates, then text, then
    anything else by its string form.
    """
    value = comparable(value)
    if isinstance(value, (bool, int, float, Decimal)):
        return (0, value)
    if isinstance(value, datetime):
        return (1, value)
    if isinstance(value, str):
        return (2, value)
    return (3, str(value))


class TablePagination(Generic[T]):
    """Windows a sequence into pages; page numbers are 1-based and always clamped"""

    def __init__(self, data: Sequence[T], page_size: int = 10):
        if page_size < 1:
            raise ValueError("page_size must be at least 1")
        self.data = list(data)
        self.page_size = page_size
        self.current_page = 1

    @property
    def total_pages(self) -> int:
        return math.ceil(len(self.data) / self.page_size)

    @property
    def paginated_data(self) -> list[T]:
        start = (self.current_page - 1) * self.page_size
        return self.data[start : start + self.page_size]

    @property
    def can_go_next(self) -> bool:
        return self.current_page < self.total_pages

    @property
    def can_go_previous(self) -> bool:
        return self.current_page > 1

    def set_page(self, page: int) -> int:
        # max() comes last so an empty table still lands on page 1
        self.current_page = max(1, min(page, self.total_pages))
        return self.current_page

    def set_page_size(self, size: int) -> None:
        if size < 1:
            raise ValueError("page_size must be at least 1")
        self.page_size = size
        new_total = self.total_pages
        if self.current_page > new_total:
            self.current_page = max(1, new_total)

    def go_to_first_page(self) -> int:
        return self.set_page(1)

    def go_to_last_page(self) -> int:
        return self.set_page(self.total_pages)

    def go_to_next_page(self) -> int:
        return self.set_page(self.current_page + 1)

    def go_to_previous_page(self) -> int:
        return self.set_page(self.current_page - 1)

    def to_dict(self) -> dict:
        return {
            "current_page": self.current_page,
            "page_size": self.page_size,
            "total_pages": self.total_pages,
            "total_items": len(self.data),
            "can_go_next": self.can_go_next,
            "can_go_previous": self.can_go_previous,
        }


@dataclass(frozen=True)
class SortConfig:
    key: str
    direction: SortDirection = "asc"


class TableSorting(Generic[T]):
    """
    Sorts by one column at a time.

    Requesting the column that is currently ascending flips it to descending;
    anything else starts ascending. Null values always sort after non-null
    values, whichever the direction.
    """

    def __init__(self, data: Sequence[T], initial_sort: Optional[SortConfig] = None):
        self.data = list(data)
        self.sort_config = initial_sort

    @property
    def sorted_data(self) -> list[T]:
        if not self.sort_config:
            return list(self.data)

        key = self.sort_config.key
        present = [item for item in self.data if resolve_key(item, key) is not None]
        missing = [item for item in self.data if resolve_key(item, key) is None]
        present.sort(
            key=lambda item: sort_key(resolve_key(item, key)),
            reverse=self.sort_config.direction == "desc",
        )
        return present + missing

    def request_sort(self, key: str) -> SortConfig:
        direction: SortDirection = "asc"
        if self.sort_config and self.sort_config.key == key and self.sort_config.direction == "asc":
            direction = "desc"
        self.sort_config = SortConfig(key=key, direction=direction)
        return self.sort_config

    def get_sort_indicator(self, key: str) -> Optional[SortDirection]:
        if not self.sort_config or self.sort_config.key != key:
            return None
        return self.sort_config.direction


def sort_and_paginate(
    items: Sequence[T],
    sort_by: Optional[str] = None,
    sort_dir: SortDirection = "asc",
    page: int = 1,
    page_size: int = 10,
) -> tuple[list[T], dict]:
    """Sort then window `items`; returns the page and its pagination metadata"""
    sorting = TableSorting(items, SortConfig(sort_by, sort_dir) if sort_by else None)
    pagination = TablePagination(sorting.sorted_data, page_size=page_size)
    pagination.set_page(page)

    meta = pagination.to_dict()
    meta["sort_by"] = sort_by
    meta["sort_dir"] = sorting.get_sort_indicator(sort_by) if sort_by else None
    return pagination.paginated_data, meta
