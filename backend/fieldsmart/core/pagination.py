"""Page-number pagination shared by every list endpoint."""

import math
from dataclasses import dataclass
from typing import Annotated, Any, TypedDict

from fastapi import Depends, Query
from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

DEFAULT_PAGE_SIZE = 25
MAX_PAGE_SIZE = 100


class PageMeta(TypedDict):
    page: int
    page_size: int
    total_count: int
    total_pages: int


@dataclass(frozen=True)
class PaginationParams:
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    def meta(self, total_count: int) -> PageMeta:
        return PageMeta(
            page=self.page,
            page_size=self.page_size,
            total_count=total_count,
            total_pages=math.ceil(total_count / self.page_size) if total_count else 0,
        )


def get_pagination(
    page: int = Query(1, ge=1, description="Page number, starting at 1"),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE, description="Rows per page"),
) -> PaginationParams:
    return PaginationParams(page=page, page_size=page_size)


Pagination = Annotated[PaginationParams, Depends(get_pagination)]


async def paginate(
    db: AsyncSession, query: Select, pagination: PaginationParams
) -> tuple[list[Any], PageMeta]:
    """Count the filtered query, then fetch one page of it.

    ``query`` must already carry its ORDER BY clause.
    """
    count_query = select(func.count()).select_from(query.order_by(None).subquery())
    total = (await db.execute(count_query)).scalar() or 0

    rows = await db.execute(query.offset(pagination.offset).limit(pagination.page_size))
    return list(rows.scalars().all()), pagination.meta(total)
