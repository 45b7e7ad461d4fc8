"""Skip/limit pagination shared by every listing endpoint."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Sequence

from fastapi import Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_LIMIT = 100


@dataclass
class PageParams:
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


@dataclass
class Page:
    items: List[Any]
    total_count: int
    current_page: int
    total_pages: int

    def as_dict(self) -> dict:
        return {
            "items": self.items,
            "total_count": self.total_count,
            "current_page": self.current_page,
            "total_pages": self.total_pages,
        }


def page_params(
    page: int = Query(DEFAULT_PAGE, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
) -> PageParams:
    """FastAPI dependency reading `page` and `limit` from the query string."""
    return PageParams(page=page, limit=limit)


def total_pages_for(total_count: int, limit: int) -> int:
    return math.ceil(total_count / limit) if limit > 0 else 0


async def paginate(
    db: AsyncSession,
    stmt: Select,
    params: PageParams,
    order_by: Sequence[Any],
    serialize: Optional[Callable[[Any], Any]] = None,
) -> Page:
    """Count the filtered statement, then fetch one ordered page of it."""
    count_stmt = select_count(stmt)
    total_count = int((await db.execute(count_stmt)).scalar_one() or 0)

    result = await db.execute(stmt.order_by(*order_by).offset(params.skip).limit(params.limit))
    rows = list(result.unique().scalars().all())
    items = [serialize(row) for row in rows] if serialize else rows

    return Page(
        items=items,
        total_count=total_count,
        current_page=params.page,
        total_pages=total_pages_for(total_count, params.limit),
    )


def select_count(stmt: Select) -> Select:
    return select(func.count()).select_from(stmt.order_by(None).subquery())
