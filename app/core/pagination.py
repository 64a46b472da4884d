"""
Page/limit pagination shared by list endpoints.
"""
from typing import Any, Sequence, Tuple
from pydantic import BaseModel
from sqlalchemy import Select, select, func
from sqlalchemy.ext.asyncio import AsyncSession


class Pagination(BaseModel):
    current: int
    total: int
    count: int
    total_records: int


async def paginate(db: AsyncSession, stmt: Select, page: int, limit: int) -> Tuple[Sequence[Any], Pagination]:
    """
    Run `stmt` for one page.

    Args:
        db: Database session
        stmt: Filtered and ordered select of a single entity
        page: 1-based page number
        limit: Page size

    Returns:
        (items on the page, pagination metadata)
    """
    total_result = await db.execute(select(func.count()).select_from(stmt.order_by(None).subquery()))
    total_records = total_result.scalar() or 0

    result = await db.execute(stmt.offset((page - 1) * limit).limit(limit))
    items = result.scalars().all()

    return items, Pagination(
        current=page,
        total=(total_records + limit - 1) // limit if limit > 0 else 0,
        count=len(items),
        total_records=total_records,
    )
