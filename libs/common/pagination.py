"""Offset pagination for list endpoints.

Usage:
    rows, meta = await paginate(db, query, page=page, limit=limit)
    return {"data": rows, "pagination": meta}
"""

import math
from typing import Any, Sequence

from pydantic import BaseModel
from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession


class PaginationMeta(BaseModel):
    total: int
    page: int
    limit: int
    total_pages: int


async def paginate(
    db: AsyncSession, query: Select, *, page: int = 1, limit: int = 10
) -> tuple[Sequence[Any], PaginationMeta]:
    """Run ``query`` for one page and count the full (unpaged) result."""
    page = max(page, 1)
    limit = max(limit, 1)

    count_query = select(func.count()).select_from(query.order_by(None).subquery())
    total = (await db.execute(count_query)).scalar_one()

    result = await db.execute(query.offset((page - 1) * limit).limit(limit))
    rows = result.scalars().all()

    return rows, PaginationMeta(
        total=total,
        page=page,
        limit=limit,
        total_pages=math.ceil(total / limit) if total else 0,
    )
