"""Pagination utilities."""

from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.sql import Select

T = TypeVar("T")


class PaginationParams(BaseModel):
    """Pagination parameters."""

    page: int = Field(default=1, ge=1, description="Page number (1-based)")
    size: int = Field(default=20, ge=1, le=100, description="Page size")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.size


class PaginatedResponse(BaseModel, Generic[T]):
    """Generic paginated response."""

    items: list[T]
    total: int
    page: int
    size: int
    has_next: bool
    has_prev: bool
    total_pages: int


async def paginate(
    db: AsyncSession,
    query: Select,
    pagination: PaginationParams,
    schema: type[BaseModel] | None = None,
) -> dict[str, Any]:
    """
    Paginate a SQLAlchemy query.

    Args:
        db: Database session
        query: SQLAlchemy select query
        pagination: Pagination parameters
        schema: Optional pydantic schema each ORM row is validated into

    Returns:
        Dictionary with pagination info and items
    """
    subquery = query.order_by(None).subquery()
    count_query = select(func.count()).select_from(subquery)
    total_result = await db.execute(count_query)
    total = total_result.scalar() or 0

    total_pages = (total + pagination.size - 1) // pagination.size  # Ceiling division

    result = await db.execute(query.offset(pagination.offset).limit(pagination.size))
    items = result.scalars().all()
    if schema is not None:
        items = [schema.model_validate(item) for item in items]

    return {
        "items": items,
        "total": total,
        "page": pagination.page,
        "size": pagination.size,
        "has_next": pagination.page < total_pages,
        "has_prev": pagination.page > 1,
        "total_pages": total_pages,
    }
