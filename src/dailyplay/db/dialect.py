"""Dialect-aware INSERT ... ON CONFLICT DO NOTHING."""

from __future__ import annotations

from typing import Any

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from dailyplay.db.base import Base


async def insert_ignore(
    db: AsyncSession,
    model: type[Base],
    conflict_columns: list[str],
    values: dict[str, Any],
) -> bool:
    """Insert a row unless it collides on ``conflict_columns``.

    Returns True when a row was written, False when the conflict swallowed it.
    """
    dialect = db.bind.dialect.name if db.bind is not None else "postgresql"
    insert = sqlite_insert if dialect == "sqlite" else pg_insert
    stmt = insert(model).values(**values).on_conflict_do_nothing(index_elements=conflict_columns)
    result = await db.execute(stmt)
    return bool(result.rowcount)
