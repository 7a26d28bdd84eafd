"""Database utility functions for cross-database compatibility."""

import logging
from datetime import datetime, timezone
from typing import Any, TypeVar

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

T = TypeVar("T")


def to_naive_utc(value: datetime) -> datetime:
    """Normalize an aware datetime to naive UTC (storage format)."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _dialect_insert(session: AsyncSession):
    dialect = session.bind.dialect.name
    if dialect == "postgresql":
        return pg_insert
    if dialect == "sqlite":
        return sqlite_insert
    raise NotImplementedError(f"Upsert not supported for dialect {dialect!r}")


async def upsert(
    session: AsyncSession,
    model: type[T],
    values: dict[str, Any],
    conflict_columns: list[str],
    update_columns: list[str] | None = None,
) -> None:
    """
    INSERT ... ON CONFLICT upsert for PostgreSQL and SQLite.

    Args:
        session: AsyncSession instance
        model: SQLModel table class
        values: Dictionary of column values to insert/update
        conflict_columns: Columns of the unique constraint that defines identity
        update_columns: Columns to update on conflict (defaults to all non-conflict columns)

    Example:
        await upsert(
            session,
            Projection,
            {"player_id": 7, "game_id": 12, "projection_date": day, "fruit_score": 81, ...},
            conflict_columns=["player_id", "game_id", "projection_date"],
        )
    """
    if update_columns is None:
        update_columns = [k for k in values.keys() if k not in conflict_columns]

    insert = _dialect_insert(session)
    stmt = insert(model).values(**values)

    if update_columns:
        update_dict = {col: getattr(stmt.excluded, col) for col in update_columns}
        stmt = stmt.on_conflict_do_update(
            index_elements=conflict_columns,
            set_=update_dict,
        )
    else:
        stmt = stmt.on_conflict_do_nothing(index_elements=conflict_columns)

    await session.execute(stmt)


async def bulk_upsert(
    session: AsyncSession,
    model: type[T],
    values_list: list[dict[str, Any]],
    conflict_columns: list[str],
    update_columns: list[str] | None = None,
) -> int:
    """
    Upsert many rows inside the caller's transaction.

    Unlike per-row best-effort writes, any failure propagates so the caller
    can roll back the whole batch.

    Returns:
        Number of records processed
    """
    for values in values_list:
        await upsert(session, model, values, conflict_columns, update_columns)
    return len(values_list)
