"""Sorting and pagination for list endpoints."""

from dataclasses import dataclass
from math import ceil
from typing import Any

from fastapi import Query
from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from designhub.config import get_settings
from designhub.exceptions import ValidationFailed

settings = get_settings()


@dataclass(frozen=True)
class PageParams:
    page: int
    limit: int
    sort: str | None = None

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def page_params(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    sort: str | None = Query(
        None,
        max_length=50,
        description="Field to sort by; prefix with '-' for descending",
    ),
) -> PageParams:
    return PageParams(page=page, limit=limit, sort=sort)


@dataclass(frozen=True)
class Pagination:
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        return ceil(self.total / self.limit) if self.limit else 0

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev(self) -> bool:
        return self.page > 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "page": self.page,
            "limit": self.limit,
            "total": self.total,
            "total_pages": self.total_pages,
            "has_next": self.has_next,
            "has_prev": self.has_prev,
        }


def order_clauses(sort: str | None, sortable: dict[str, Any], default: str) -> list[Any]:
    """Translate ``field`` / ``-field`` into ORDER BY clauses.

    Raises:
        ValidationFailed: the field is not in ``sortable``
    """
    spec = (sort or default).strip()
    descending = spec.startswith("-")
    field = spec.lstrip("-+")
    column = sortable.get(field)
    if column is None:
        allowed = ", ".join(sorted(sortable))
        raise ValidationFailed(f"Cannot sort by '{field}'. Allowed: {allowed}", field="sort")
    return [column.desc() if descending else column.asc()]


async def paginate(
    db: AsyncSession,
    stmt: Select,
    params: PageParams,
    sortable: dict[str, Any],
    default_sort: str = "-created_at",
    tiebreaker: Any = None,
) -> tuple[list[Any], Pagination]:
    """Run ``stmt`` for one page.

    ``total`` counts the whole filtered statement; pages past the end come
    back empty rather than raising.
    """
    count_query = select_count(stmt)
    total = (await db.execute(count_query)).scalar() or 0

    ordering = order_clauses(params.sort, sortable, default_sort)
    if tiebreaker is not None:
        ordering.append(tiebreaker)

    result = await db.execute(
        stmt.order_by(None).order_by(*ordering).offset(params.offset).limit(params.limit)
    )
    items = list(result.scalars().all())
    return items, Pagination(page=params.page, limit=params.limit, total=total)


def select_count(stmt: Select) -> Select:
    return select(func.count()).select_from(stmt.order_by(None).subquery())
