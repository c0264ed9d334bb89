# Services/query.py
"""
Filter-to-query translation shared by every list endpoint.

A resource parses its URL query parameters into a typed filter object, then
narrows a SQLAlchemy query with the helpers below and hands it to
`paginate`, which returns the page slice together with the total row count.
"""
import math
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Any, Generic, List, Literal, Optional, Sequence, TypeVar, Union

from pydantic import BaseModel
from sqlalchemy import or_

ALL = "all"

# Tri-state query flag: true / false, or "all" (or absent) for no predicate
Flag = Optional[Union[bool, Literal["all"]]]

T = TypeVar("T")


def is_set(value: Any) -> bool:
    """A filter value counts only when present and not the "all" sentinel."""
    if value is None:
        return False
    if isinstance(value, str):
        return value.strip() != "" and value != ALL
    return True


def apply_search(query, columns: Sequence, term: Optional[str]):
    """Case-insensitive substring match OR-ed across `columns`."""
    if term is None or not term.strip():
        return query
    pattern = f"%{term.strip()}%"
    return query.filter(or_(*[column.ilike(pattern) for column in columns]))


def apply_equals(query, column, value):
    if not is_set(value):
        return query
    return query.filter(column == value)


def _range_start(value):
    if isinstance(value, datetime):
        return value
    return datetime.combine(value, time.min)


def _range_end(value):
    if isinstance(value, datetime):
        return value
    return datetime.combine(value, time.max)


def apply_date_range(query, column, date_from: Optional[date] = None, date_to: Optional[date] = None):
    """Inclusive bounds; a plain date as upper bound covers that whole day."""
    if date_from is not None:
        query = query.filter(column >= _range_start(date_from))
    if date_to is not None:
        query = query.filter(column <= _range_end(date_to))
    return query


@dataclass
class Page:
    items: List[Any] = field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 10

    @property
    def total_pages(self) -> int:
        if self.limit <= 0:
            return 0
        return math.ceil(self.total / self.limit)

    def as_dict(self) -> dict:
        return {
            "items": self.items,
            "total": self.total,
            "page": self.page,
            "limit": self.limit,
            "total_pages": self.total_pages,
        }


def paginate(query, page: int = 1, limit: int = 10, order_by: Optional[Sequence] = None) -> Page:
    """
    Count the filtered rows and fetch rows [(page-1)*limit, page*limit-1].

    Without an explicit `order_by` the primary entity is ordered newest first
    on its `created_at` column.
    """
    page = max(page, 1)
    total = query.order_by(None).count()
    if not order_by:
        entity = query.column_descriptions[0]["entity"]
        order_by = [entity.created_at.desc()]
    offset = (page - 1) * limit
    items = query.order_by(*order_by).offset(offset).limit(limit).all()
    return Page(items=items, total=total, page=page, limit=limit)


class Paginated(BaseModel, Generic[T]):
    items: List[T]
    total: int
    page: int
    limit: int
    total_pages: int


class BulkIds(BaseModel):
    ids: List[str]


class BulkResult(BaseModel):
    count: int
