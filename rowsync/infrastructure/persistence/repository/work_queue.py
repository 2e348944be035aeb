"""SQLAlchemy adapter implementing WorkQueue."""

import logging
from collections.abc import Iterable
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import uuid4

from sqlalchemy import and_, case, delete, func, insert, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from rowsync.domain.ingest.model import BatchPayload, JobHandle, JobId, JobState
from rowsync.domain.ingest.port import WorkQueue
from rowsync.domain.shared.error import DuplicateJobError, StorageUnavailableError
from rowsync.infrastructure.persistence.database import connection, transaction
from rowsync.infrastructure.persistence.tables import batch_jobs_table

logger = logging.getLogger(__name__)

jobs = batch_jobs_table

# Competing workers may take the row we picked; try a few candidates before giving up
_LEASE_CANDIDATES = 5


class SQLAlchemyWorkQueue(WorkQueue):
    """Work queue backed by the batch_jobs table.

    Each operation is its own transaction so a lease or ack is visible to
    every other worker process as soon as it returns. Leases are taken with
    a compare-and-set on status, with FOR UPDATE SKIP LOCKED where the
    dialect supports it.
    """

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    async def submit(self, job_id: JobId, payload: BatchPayload) -> JobHandle:
        now = datetime.now(UTC)
        stmt = insert(jobs).values(
            id=job_id,
            source_key=payload.source_key,
            start_index=payload.start_index,
            row_count=len(payload.rows),
            payload=payload.model_dump(mode="json", by_alias=True),
            status=JobState.WAITING.value,
            attempts=0,
            available_at=now,
            created_at=now,
            updated_at=now,
        )
        try:
            async with self._engine.begin() as conn:
                await conn.execute(stmt)
        except IntegrityError as e:
            raise DuplicateJobError(job_id) from e
        except SQLAlchemyError as e:
            raise StorageUnavailableError(f"Failed to submit job {job_id}: {e}") from e

        return JobHandle(
            id=job_id,
            source_key=payload.source_key,
            start_index=payload.start_index,
            row_count=len(payload.rows),
            state=JobState.WAITING,
        )

    async def jobs_in_state(
        self, states: Iterable[JobState], source_key: str | None = None
    ) -> list[JobHandle]:
        now = datetime.now(UTC)
        conditions = [_state_condition(state, now) for state in set(states)]
        if not conditions:
            return []

        stmt = select(
            jobs.c.id,
            jobs.c.source_key,
            jobs.c.start_index,
            jobs.c.row_count,
            jobs.c.status,
            jobs.c.attempts,
            jobs.c.available_at,
        ).where(or_(*conditions))
        if source_key is not None:
            stmt = stmt.where(jobs.c.source_key == source_key)
        stmt = stmt.order_by(jobs.c.source_key, jobs.c.start_index)

        async with self._connect() as conn:
            rows = (await conn.execute(stmt)).fetchall()

        return [
            JobHandle(
                id=JobId(row.id),
                source_key=row.source_key,
                start_index=row.start_index,
                row_count=row.row_count,
                state=_row_state(row.status, row.available_at, now),
                attempts=row.attempts,
            )
            for row in rows
        ]

    async def lease_next(self, worker_id: str) -> JobHandle | None:
        now = datetime.now(UTC)
        token = str(uuid4())

        async with self._transaction() as conn:
            candidates = select(jobs.c.id).where(
                jobs.c.status == JobState.WAITING.value,
                jobs.c.available_at <= now,
            )
            candidates = candidates.order_by(jobs.c.available_at, jobs.c.created_at)
            candidates = candidates.limit(_LEASE_CANDIDATES)
            if conn.dialect.name == "postgresql":
                candidates = candidates.with_for_update(skip_locked=True)
            ids = (await conn.execute(candidates)).scalars().all()

            for candidate in ids:
                stmt = (
                    update(jobs)
                    .where(jobs.c.id == candidate, jobs.c.status == JobState.WAITING.value)
                    .values(
                        status=JobState.ACTIVE.value,
                        lease_token=token,
                        leased_by=worker_id,
                        leased_at=now,
                        updated_at=now,
                    )
                    .returning(
                        jobs.c.id,
                        jobs.c.source_key,
                        jobs.c.start_index,
                        jobs.c.row_count,
                        jobs.c.attempts,
                        jobs.c.payload,
                    )
                )
                row = (await conn.execute(stmt)).first()
                if row is not None:
                    return JobHandle(
                        id=JobId(row.id),
                        source_key=row.source_key,
                        start_index=row.start_index,
                        row_count=row.row_count,
                        state=JobState.ACTIVE,
                        attempts=row.attempts,
                        lease_token=token,
                        payload=BatchPayload.model_validate(row.payload),
                    )
        return None

    async def ack(self, handle: JobHandle) -> bool:
        now = datetime.now(UTC)
        stmt = (
            update(jobs)
            .where(*self._lease_held(handle))
            .values(
                status=JobState.COMPLETED.value,
                lease_token=None,
                finished_at=now,
                updated_at=now,
            )
        )
        async with self._transaction() as conn:
            result = await conn.execute(stmt)

        if result.rowcount == 0:
            logger.warning(f"Lease on {handle.id} was lost before ack")
            return False
        return True

    async def fail(
        self,
        handle: JobHandle,
        error: str,
        *,
        max_attempts: int,
        backoff_seconds: float,
    ) -> JobState:
        now = datetime.now(UTC)
        attempts = handle.attempts + 1

        if attempts >= max_attempts:
            state = JobState.FAILED
            values: dict[str, Any] = {
                "status": JobState.FAILED.value,
                "finished_at": now,
            }
        else:
            state = JobState.DELAYED
            delay = backoff_seconds * 2 ** (attempts - 1)
            values = {
                "status": JobState.WAITING.value,
                "available_at": now + timedelta(seconds=delay),
            }
        values.update(
            attempts=attempts,
            last_error=error,
            lease_token=None,
            leased_by=None,
            leased_at=None,
            updated_at=now,
        )

        stmt = update(jobs).where(*self._lease_held(handle)).values(**values)
        async with self._transaction() as conn:
            result = await conn.execute(stmt)

        if result.rowcount == 0:
            logger.warning(f"Lease on {handle.id} was lost before fail")
            return handle.state
        if state == JobState.FAILED:
            logger.error(f"Job {handle.id} failed permanently after {attempts} attempts: {error}")
        return state

    async def reset_stale(self, lease_timeout: float, *, max_attempts: int | None = None) -> int:
        now = datetime.now(UTC)
        cutoff = now - timedelta(seconds=lease_timeout)
        stale = [jobs.c.status == JobState.ACTIVE.value, jobs.c.leased_at < cutoff]
        released = {
            "attempts": jobs.c.attempts + 1,
            "lease_token": None,
            "leased_by": None,
            "leased_at": None,
            "updated_at": now,
        }

        async with self._transaction() as conn:
            dead = 0
            if max_attempts is not None:
                result = await conn.execute(
                    update(jobs)
                    .where(*stale, jobs.c.attempts + 1 >= max_attempts)
                    .values(
                        status=JobState.FAILED.value,
                        last_error="lease expired",
                        finished_at=now,
                        **released,
                    )
                )
                dead = result.rowcount
            result = await conn.execute(
                update(jobs)
                .where(*stale)
                .values(status=JobState.WAITING.value, available_at=now, **released)
            )
            redelivered = result.rowcount

        if redelivered:
            logger.info(f"Reset {redelivered} stale leases (older than {lease_timeout}s)")
        if dead:
            logger.error(f"Dead-lettered {dead} jobs whose leases expired {max_attempts} times")
        return redelivered + dead

    async def count_by_state(self, source_key: str | None = None) -> dict[JobState, int]:
        now = datetime.now(UTC)
        delayed = func.sum(case((jobs.c.available_at > now, 1), else_=0))
        stmt = select(jobs.c.status, func.count(), delayed).group_by(jobs.c.status)
        if source_key is not None:
            stmt = stmt.where(jobs.c.source_key == source_key)

        async with self._connect() as conn:
            rows = (await conn.execute(stmt)).fetchall()

        counts = {state: 0 for state in JobState}
        for status, count, delayed_count in rows:
            if status == JobState.WAITING.value:
                counts[JobState.DELAYED] += delayed_count or 0
                counts[JobState.WAITING] += count - (delayed_count or 0)
            else:
                counts[JobState(status)] += count
        return counts

    async def purge_source(self, source_key: str, states: Iterable[JobState]) -> int:
        now = datetime.now(UTC)
        conditions = [_state_condition(state, now) for state in set(states)]
        if not conditions:
            return 0
        stmt = delete(jobs).where(jobs.c.source_key == source_key, or_(*conditions))
        async with self._transaction() as conn:
            result = await conn.execute(stmt)
        return result.rowcount

    async def prune(self, keep_completed: int, keep_failed: int) -> int:
        retention = ((JobState.COMPLETED, keep_completed), (JobState.FAILED, keep_failed))
        removed = 0
        async with self._transaction() as conn:
            for state, keep in retention:
                newest = (
                    select(jobs.c.id)
                    .where(jobs.c.status == state.value)
                    .order_by(jobs.c.finished_at.desc())
                    .limit(keep)
                )
                stmt = delete(jobs).where(
                    jobs.c.status == state.value,
                    jobs.c.id.not_in(newest),
                )
                result = await conn.execute(stmt)
                removed += result.rowcount

        if removed:
            logger.info(f"Pruned {removed} finished jobs")
        return removed

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _lease_held(handle: JobHandle) -> list:
        return [
            jobs.c.id == handle.id,
            jobs.c.status == JobState.ACTIVE.value,
            jobs.c.lease_token == handle.lease_token,
        ]

    def _transaction(self):
        return transaction(self._engine, "Work queue")

    def _connect(self):
        return connection(self._engine, "Work queue")


def _state_condition(state: JobState, now: datetime):
    """SQL condition selecting jobs in a logical state."""
    if state == JobState.WAITING:
        return and_(jobs.c.status == JobState.WAITING.value, jobs.c.available_at <= now)
    if state == JobState.DELAYED:
        return and_(jobs.c.status == JobState.WAITING.value, jobs.c.available_at > now)
    return jobs.c.status == state.value


def _row_state(status: str, available_at: datetime, now: datetime) -> JobState:
    if status == JobState.WAITING.value and _as_utc(available_at) > now:
        return JobState.DELAYED
    return JobState(status)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)
