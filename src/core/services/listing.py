"""Shared pagination and sorting for list endpoints."""

from datetime import datetime
from typing import Any, Callable, Sequence, TypeVar

from pydantic import Field

from core.models.base import ApiModel, UtcDatetime

T = TypeVar("T")


class ListQuery(ApiModel):
    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1, le=100)
    sort_by: str = "createdAt"
    sort_order: str = Field("desc", pattern="^(asc|desc)$")


class DateRangeQuery(ApiModel):
    start_date: UtcDatetime | None = None
    end_date: UtcDatetime | None = None


def _sort_key(item: Any, attribute: str) -> tuple[int, Any]:
    value = getattr(item, attribute, None)
    if value is None:
        return (0, "")
    if hasattr(value, "value"):
        value = value.value
    return (1, value)


def sort_items(items: Sequence[T], sort_by: str, sort_order: str = "desc") -> list[T]:
    """Sort by a camelCase or snake_case attribute name; unknown attributes fall back to createdAt."""
    attribute = _snake(sort_by)
    if items and not hasattr(items[0], attribute):
        attribute = "created_at"
    return sorted(items, key=lambda item: _sort_key(item, attribute), reverse=sort_order == "desc")


def paginate(items: Sequence[T], page: int, limit: int) -> tuple[list[T], dict[str, Any]]:
    total = len(items)
    start = (page - 1) * limit
    window = list(items[start : start + limit])
    pages = (total + limit - 1) // limit
    return window, {
        "current": page,
        "pages": pages,
        "total": total,
        "hasNext": start + len(window) < total,
        "hasPrev": page > 1,
    }


def listing(
    items: Sequence[T], query: ListQuery, render: Callable[[T], dict[str, Any]]
) -> tuple[list[dict[str, Any]], dict[str, Any]]:
    ordered = sort_items(items, query.sort_by, query.sort_order)
    window, pagination = paginate(ordered, query.page, query.limit)
    return [render(item) for item in window], pagination


def in_range(value: datetime | None, start: datetime | None, end: datetime | None) -> bool:
    if value is None:
        return start is None and end is None
    if start is not None and value < start:
        return False
    if end is not None and value > end:
        return False
    return True


def _snake(name: str) -> str:
    return "".join(f"_{c.lower()}" if c.isupper() else c for c in name).lstrip("_")
