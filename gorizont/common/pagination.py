"""Pagination and sorting for list endpoints."""

from __future__ import annotations

from typing import Any, Callable, Generic, TypeVar

from fastapi import Query
from pydantic import BaseModel
from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

T = TypeVar("T")


class PaginationParams:
    """Inject as a FastAPI dependency for any list endpoint."""

    def __init__(
        self,
        page: int = Query(1, ge=1, description="Page number"),
        page_size: int = Query(20, ge=1, le=100, description="Items per page"),
        sort_by: str | None = Query(None, description="Column to sort by"),
        sort_order: str = Query("desc", pattern="^(asc|desc)$", description="asc or desc"),
    ):
        self.page = page
        self.page_size = page_size
        self.sort_by = sort_by
        self.sort_order = sort_order

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


class PaginatedResponse(BaseModel, Generic[T]):
    items: list[T]
    total: int
    page: int
    page_size: int
    total_pages: int


async def paginate(
    db: AsyncSession,
    query: Select,
    params: PaginationParams,
    model: Any = None,
) -> tuple[list[Any], int]:
    """Apply pagination to a query and return (items, total_count).

    ``sort_by`` is honoured only when it names a column of ``model``; otherwise
    the ordering already present on ``query`` is kept.
    """
    count_q = select(func.count()).select_from(query.order_by(None).subquery())
    total = (await db.execute(count_q)).scalar() or 0

    if params.sort_by and model is not None:
        col = getattr(model, params.sort_by, None)
        if col is not None:
            query = query.order_by(None).order_by(
                col.asc() if params.sort_order == "asc" else col.desc()
            )

    query = query.offset(params.offset).limit(params.page_size)

    result = await db.execute(query)
    return list(result.scalars().all()), total


def page_response(
    response_cls: type[PaginatedResponse],
    items: list[Any],
    total: int,
    params: PaginationParams,
    serialize: Callable[[Any], Any],
    **extra: Any,
) -> PaginatedResponse:
    return response_cls(
        items=[serialize(i) for i in items],
        total=total,
        page=params.page,
        page_size=params.page_size,
        total_pages=(total + params.page_size - 1) // params.page_size,
        **extra,
    )
