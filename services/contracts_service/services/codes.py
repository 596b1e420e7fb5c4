"""Sequential human-readable codes (``C0001``, ``C0002``...).

The counter lives in ``code_sequences`` and is row-locked for the rest of the
caller's transaction, so two concurrent creates cannot draw the same number.
A unique constraint on the code column backs this up.
"""

from typing import Any

from libs.common.logging import get_logger
from services.contracts_service.models import CodeSequence
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


async def _last_issued_number(db: AsyncSession, model: Any, prefix: str) -> int:
    """Seed value for a fresh counter, taken from the newest existing row.

    Historic rows may carry non-numeric codes (``C-TEMP``); the row id is used
    in that case.
    """
    result = await db.execute(select(model).order_by(model.id.desc()).limit(1))
    last = result.scalar_one_or_none()
    if last is None:
        return 0

    suffix = last.code[len(prefix):]
    if suffix.isdigit():
        return int(suffix)

    logger.warning(
        "Non-numeric %s code %r on row %s; seeding sequence from id",
        model.__tablename__,
        last.code,
        last.id,
    )
    return last.id


async def next_code(
    db: AsyncSession,
    *,
    sequence: str,
    prefix: str,
    model: Any,
    width: int = 4,
) -> str:
    """Reserve and return the next code for ``sequence``."""
    result = await db.execute(
        select(CodeSequence).where(CodeSequence.name == sequence).with_for_update()
    )
    counter = result.scalar_one_or_none()
    if counter is None:
        counter = CodeSequence(
            name=sequence,
            last_value=await _last_issued_number(db, model, prefix),
        )
        db.add(counter)

    counter.last_value += 1
    await db.flush()
    return f"{prefix}{counter.last_value:0{width}d}"
