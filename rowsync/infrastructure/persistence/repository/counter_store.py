"""SQLAlchemy adapter implementing CounterStore."""

import logging
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime

from sqlalchemy import delete, or_, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from rowsync.domain.ingest.port import CounterStore
from rowsync.infrastructure.persistence.database import connection, transaction
from rowsync.infrastructure.persistence.tables import progress_counters_table

logger = logging.getLogger(__name__)

counters = progress_counters_table

_WHAT = "Progress store"


def like_pattern(pattern: str) -> str:
    """Translate a ``*`` glob into a LIKE pattern, escaping LIKE metacharacters."""
    escaped = pattern.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return escaped.replace("*", "%")


class SQLAlchemyCounterStore(CounterStore):
    """Progress store backed by the progress_counters table.

    Increments and the conditional checkpoint write are single upsert
    statements, so they are atomic under concurrent workers without any
    read-modify-write in Python.
    """

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    async def get(self, key: str) -> int | None:
        async with connection(self._engine, _WHAT) as conn:
            result = await conn.execute(select(counters.c.value).where(counters.c.key == key))
            return result.scalar_one_or_none()

    async def get_many(self, keys: Sequence[str]) -> dict[str, int | None]:
        values: dict[str, int | None] = {key: None for key in keys}
        if not keys:
            return values
        stmt = select(counters.c.key, counters.c.value).where(counters.c.key.in_(list(keys)))
        async with connection(self._engine, _WHAT) as conn:
            for key, value in (await conn.execute(stmt)).fetchall():
                values[key] = value
        return values

    async def set(self, key: str, value: int) -> None:
        await self.multi_set({key: value})

    async def multi_set(self, values: Mapping[str, int]) -> None:
        if not values:
            return
        async with transaction(self._engine, _WHAT) as conn:
            for key, value in values.items():
                stmt = self._insert(conn).values(key=key, value=value, updated_at=_now())
                stmt = stmt.on_conflict_do_update(
                    index_elements=[counters.c.key],
                    set_={"value": value, "updated_at": _now()},
                )
                await conn.execute(stmt)

    async def set_if_absent(self, values: Mapping[str, int]) -> None:
        if not values:
            return
        async with transaction(self._engine, _WHAT) as conn:
            for key, value in values.items():
                stmt = self._insert(conn).values(key=key, value=value, updated_at=_now())
                await conn.execute(stmt.on_conflict_do_nothing(index_elements=[counters.c.key]))

    async def incr_by(self, key: str, amount: int) -> int:
        async with transaction(self._engine, _WHAT) as conn:
            return await self._increment(conn, key, amount)

    async def set_if_greater(self, key: str, candidate: int) -> bool:
        async with transaction(self._engine, _WHAT) as conn:
            stmt = self._insert(conn).values(key=key, value=candidate, updated_at=_now())
            stmt = stmt.on_conflict_do_update(
                index_elements=[counters.c.key],
                set_={"value": candidate, "updated_at": _now()},
                where=counters.c.value < candidate,
            ).returning(counters.c.value)
            row = (await conn.execute(stmt)).first()
        # No row back means the conflict branch was filtered out
        return row is not None

    async def apply_once(self, marker_key: str, increments: Mapping[str, int]) -> bool:
        async with transaction(self._engine, _WHAT) as conn:
            marker = (
                self._insert(conn)
                .values(key=marker_key, value=1, updated_at=_now())
                .on_conflict_do_nothing(index_elements=[counters.c.key])
                .returning(counters.c.key)
            )
            if (await conn.execute(marker)).first() is None:
                return False
            for key, amount in increments.items():
                await self._increment(conn, key, amount)
        return True

    async def keys_matching(self, pattern: str) -> list[str]:
        stmt = (
            select(counters.c.key)
            .where(counters.c.key.like(like_pattern(pattern), escape="\\"))
            .order_by(counters.c.key)
        )
        async with connection(self._engine, _WHAT) as conn:
            return list((await conn.execute(stmt)).scalars().all())

    async def delete(
        self, keys: Sequence[str] = (), *, patterns: Sequence[str] = ()
    ) -> dict[str, int]:
        conditions = []
        if keys:
            conditions.append(counters.c.key.in_(list(keys)))
        conditions.extend(
            counters.c.key.like(like_pattern(pattern), escape="\\") for pattern in patterns
        )
        if not conditions:
            return {}

        async with transaction(self._engine, _WHAT) as conn:
            selected = select(counters.c.key, counters.c.value).where(or_(*conditions))
            removed = {key: value for key, value in (await conn.execute(selected)).fetchall()}
            if removed:
                await conn.execute(delete(counters).where(counters.c.key.in_(list(removed))))
        logger.debug(f"Deleted {len(removed)} progress keys")
        return removed

    # -------------------------------------------------------------------------
    # Statement builders
    # -------------------------------------------------------------------------

    @staticmethod
    def _insert(conn: AsyncConnection):
        """Dialect-specific INSERT supporting ON CONFLICT."""
        if conn.dialect.name == "postgresql":
            return postgresql.insert(counters)
        return sqlite.insert(counters)

    async def _increment(self, conn: AsyncConnection, key: str, amount: int) -> int:
        stmt = self._insert(conn).values(key=key, value=amount, updated_at=_now())
        stmt = stmt.on_conflict_do_update(
            index_elements=[counters.c.key],
            set_={"value": counters.c.value + amount, "updated_at": _now()},
        ).returning(counters.c.value)
        return (await conn.execute(stmt)).scalar_one()


def _now() -> datetime:
    return datetime.now(UTC)
