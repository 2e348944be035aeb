"""ProgressLedger - per-source counts and the monotonic checkpoint."""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime

from rowsync.domain.ingest.model import (
    PENDING_STATES,
    JobLevel,
    JobState,
    OutcomeTally,
    PendingBatchWrite,
    PendingLedgerWrites,
    ProgressRecord,
    SnapshotEntry,
)
from rowsync.domain.ingest.port import CheckpointSnapshotStore, CounterStore, WorkQueue
from rowsync.domain.shared.error import (
    InvalidStateError,
    NotFoundError,
    SourceChangedError,
    StorageUnavailableError,
)
from rowsync.domain.shared.service import Service

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerKeys:
    """Key layout of the progress store."""

    prefix: str = ""

    def total(self, source_key: str) -> str:
        return f"{self.prefix}total-rows:{source_key}"

    def updated(self, source_key: str) -> str:
        return f"{self.prefix}updated:{source_key}"

    def skipped(self, source_key: str) -> str:
        return f"{self.prefix}skipped:{source_key}"

    def failed(self, source_key: str) -> str:
        return f"{self.prefix}failed:{source_key}"

    def checkpoint(self, source_key: str) -> str:
        return f"{self.prefix}checkpoint:{source_key}:last-processed-row"

    def batch_marker(self, source_key: str, start_index: int) -> str:
        return f"{self.prefix}batch-done:{source_key}:{start_index}"

    def batch_marker_pattern(self, source_key: str) -> str:
        return f"{self.prefix}batch-done:{source_key}:*"

    def total_pattern(self) -> str:
        return f"{self.prefix}total-rows:*"

    def source_of_total(self, key: str) -> str:
        return key.removeprefix(f"{self.prefix}total-rows:")

    def counters(self, source_key: str) -> list[str]:
        """Every scalar key held for a source."""
        return [
            self.total(source_key),
            self.updated(source_key),
            self.skipped(source_key),
            self.failed(source_key),
            self.checkpoint(source_key),
        ]


class ProgressLedger(Service):
    """Crash-safe progress tracking for each source.

    The counter store is authoritative and shared by every worker; the
    snapshot file is a durable copy rewritten on each checkpoint so
    progress survives queue eviction. All mutations go through the store's
    atomic primitives.
    """

    store: CounterStore
    snapshots: CheckpointSnapshotStore
    queue: WorkQueue
    keys: LedgerKeys
    pending: PendingLedgerWrites

    async def initialize(self, source_key: str, total_rows: int) -> None:
        """Create the source's counters at zero and fix ``total_rows``.

        Idempotent. Existing counters are left untouched.

        Raises:
            SourceChangedError: A different total is already recorded.
        """
        await self.store.set_if_absent(
            {
                self.keys.total(source_key): total_rows,
                self.keys.updated(source_key): 0,
                self.keys.skipped(source_key): 0,
                self.keys.failed(source_key): 0,
                self.keys.checkpoint(source_key): 0,
            }
        )
        recorded = await self.store.get(self.keys.total(source_key))
        if recorded is not None and recorded != total_rows:
            raise SourceChangedError(source_key, recorded=recorded, counted=total_rows)

    async def record_batch(self, source_key: str, start_index: int, tally: OutcomeTally) -> bool:
        """Add a batch's outcome counts exactly once.

        Returns False when the batch was already counted (redelivery).
        """
        applied = await self.store.apply_once(
            self.keys.batch_marker(source_key, start_index),
            {
                self.keys.updated(source_key): tally.updated,
                self.keys.skipped(source_key): tally.skipped,
                self.keys.failed(source_key): tally.failed,
            },
        )
        if not applied:
            logger.info(
                f"Batch {source_key}@{start_index} already counted, skipping counter update"
            )
        return applied

    async def advance_checkpoint(self, source_key: str, candidate: int) -> bool:
        """Monotonic checkpoint update, then rewrite the snapshot entry.

        The stored ``last_processed_row`` only moves if ``candidate`` is
        strictly greater. Returns whether it moved.
        """
        advanced = await self.store.set_if_greater(self.keys.checkpoint(source_key), candidate)
        await self.write_snapshot(source_key)
        return advanced

    async def commit_batch(
        self,
        source_key: str,
        start_index: int,
        tally: OutcomeTally,
        total_rows: int,
        checkpoint_candidate: int,
    ) -> bool:
        """Record a finished batch; defer it if the store is unreachable.

        Returns True if written now, False if deferred to the next checkpoint.
        """
        write = PendingBatchWrite(
            source_key=source_key,
            start_index=start_index,
            tally=tally,
            checkpoint_candidate=checkpoint_candidate,
            total_rows=total_rows,
        )
        try:
            await self._apply(write)
        except StorageUnavailableError as e:
            logger.error(
                f"Ledger write for {source_key}@{start_index} failed, deferring: {e.message}"
            )
            self.pending.defer(write)
            return False
        return True

    async def flush_pending(self) -> list[PendingBatchWrite]:
        """Retry deferred batch writes in order. Returns the writes that went through."""
        writes = self.pending.drain()
        for i, write in enumerate(writes):
            try:
                await self._apply(write)
            except StorageUnavailableError as e:
                remaining = writes[i:]
                self.pending.requeue(remaining)
                logger.warning(
                    f"Ledger still unavailable, {len(remaining)} writes pending: {e.message}"
                )
                return writes[:i]
        if writes:
            logger.info(f"Flushed {len(writes)} deferred ledger writes")
        return writes

    async def _apply(self, write: PendingBatchWrite) -> None:
        await self.record_batch(write.source_key, write.start_index, write.tally)
        await self.advance_checkpoint(write.source_key, write.checkpoint_candidate)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def read(self, source_key: str) -> ProgressRecord | None:
        """Current progress, from the store or else from the snapshot."""
        values = await self.store.get_many(self.keys.counters(source_key))
        total = values[self.keys.total(source_key)]
        if total is None:
            entry = await self.snapshots.get(source_key)
            return entry.to_progress(source_key) if entry is not None else None
        return ProgressRecord(
            source_key=source_key,
            total_rows=total,
            updated=values[self.keys.updated(source_key)] or 0,
            skipped=values[self.keys.skipped(source_key)] or 0,
            failed=values[self.keys.failed(source_key)] or 0,
            last_processed_row=values[self.keys.checkpoint(source_key)] or 0,
            timestamp=datetime.now(UTC),
        )

    async def last_processed_row(self, source_key: str) -> int:
        progress = await self.read(source_key)
        return progress.last_processed_row if progress is not None else 0

    async def total_rows(self, source_key: str) -> int | None:
        progress = await self.read(source_key)
        return progress.total_rows if progress is not None else None

    async def is_complete(self, source_key: str) -> bool:
        progress = await self.read(source_key)
        return progress is not None and progress.is_complete

    async def list_sources(self) -> list[str]:
        """Source keys known to the store or the snapshot."""
        keys = await self.store.keys_matching(self.keys.total_pattern())
        sources = {self.keys.source_of_total(key) for key in keys}
        sources.update(await self.snapshots.read_all())
        return sorted(sources)

    # -------------------------------------------------------------------------
    # Snapshot
    # -------------------------------------------------------------------------

    async def write_snapshot(self, source_key: str) -> None:
        progress = await self.read(source_key)
        if progress is None:
            return
        counts = await self.queue.count_by_state(source_key)
        job_level = JobLevel(
            waiting=counts.get(JobState.WAITING, 0),
            active=counts.get(JobState.ACTIVE, 0),
            delayed=counts.get(JobState.DELAYED, 0),
            total_remaining_jobs=sum(counts.get(state, 0) for state in PENDING_STATES),
        )
        await self.snapshots.put(source_key, SnapshotEntry.from_progress(progress, job_level))

    # -------------------------------------------------------------------------
    # Administration
    # -------------------------------------------------------------------------

    async def reset(self, source_key: str) -> None:
        """Erase all progress for a source, all-or-nothing.

        The source's finished jobs are purged first so a re-ingest is not
        mistaken for duplicates; progress stays intact if that fails and the
        reset can simply be retried. Store keys and the snapshot entry are
        then removed together; if the snapshot can't be rewritten the store
        keys are restored.

        Raises:
            InvalidStateError: The source still has queued or running jobs.
            NotFoundError: Nothing is recorded for the source.
        """
        counts = await self.queue.count_by_state(source_key)
        in_flight = sum(counts.get(state, 0) for state in PENDING_STATES)
        if in_flight:
            raise InvalidStateError(
                f"Source {source_key} has {in_flight} queued or running jobs; "
                "wait for them to finish before resetting"
            )

        purged = await self.queue.purge_source(source_key, [JobState.COMPLETED, JobState.FAILED])

        removed = await self.store.delete(
            self.keys.counters(source_key),
            patterns=[self.keys.batch_marker_pattern(source_key)],
        )
        try:
            entry = await self.snapshots.remove(source_key)
        except StorageUnavailableError:
            if removed:
                await self.store.multi_set(removed)
            logger.error(f"Reset of {source_key} aborted, restored {len(removed)} store keys")
            raise

        if not removed and entry is None and not purged:
            raise NotFoundError(f"No progress recorded for {source_key}")

        logger.info(
            f"Reset {source_key}: {len(removed)} store keys, snapshot entry "
            f"{'removed' if entry else 'absent'}, {purged} jobs purged"
        )
