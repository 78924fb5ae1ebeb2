"""Page-number pagination over SQLAlchemy select statements."""

import math
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession


MAX_PAGE_SIZE = 1000


class PaginationError(ValueError):
    """Page or limit outside the accepted range."""

    def __init__(self, message: str = "Invalid pagination parameters."):
        super().__init__(message)


class PageNotFoundError(LookupError):
    """Requested page lies beyond the last page of results."""

    def __init__(self, page: int):
        super().__init__(f"Page {page} does not exist.")
        self.page = page


@dataclass
class Page:
    """One page of query results plus the figures needed for pagination metadata."""

    items: list[Any] = field(default_factory=list)
    current_page: int = 1
    total_pages: int = 0
    total: int = 0
    limit: int = 20


def validate_page_params(page: int, limit: int) -> None:
    if page < 1 or limit < 1:
        raise PaginationError()
    if limit > MAX_PAGE_SIZE:
        raise PaginationError(f"limit must not exceed {MAX_PAGE_SIZE}.")


def count_pages(total: int, limit: int) -> int:
    return math.ceil(total / limit)


async def paginate(db: AsyncSession, query: Select, page: int, limit: int) -> Page:
    """Count matching rows, check the page exists, and fetch it.

    A page past the end raises ``PageNotFoundError`` unless there are no
    results at all, in which case an empty page is returned.
    """
    validate_page_params(page, limit)

    count_query = select(func.count()).select_from(query.order_by(None).subquery())
    total_result = await db.execute(count_query)
    total = total_result.scalar() or 0

    total_pages = count_pages(total, limit)
    if total_pages == 0:
        return Page(current_page=page, limit=limit)
    if page > total_pages:
        raise PageNotFoundError(page)

    result = await db.execute(query.offset((page - 1) * limit).limit(limit))

    return Page(
        items=list(result.scalars().all()),
        current_page=page,
        total_pages=total_pages,
        total=total,
        limit=limit,
    )
