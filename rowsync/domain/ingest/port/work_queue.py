"""WorkQueue port - durable at-least-once batch queue."""

from collections.abc import Iterable
from typing import Protocol

from rowsync.domain.ingest.model import BatchPayload, JobHandle, JobId, JobState


class WorkQueue(Protocol):
    """Durable queue of batch jobs keyed by deterministic identifiers.

    Delivery is at-least-once: a job whose lease expires is handed out again.
    """

    async def submit(self, job_id: JobId, payload: BatchPayload) -> JobHandle:
        """Enqueue a job.

        Raises:
            DuplicateJobError: A job with this identifier exists in any state.
        """
        ...

    async def jobs_in_state(
        self, states: Iterable[JobState], source_key: str | None = None
    ) -> list[JobHandle]:
        """Jobs currently in any of the given states, optionally for one source."""
        ...

    async def lease_next(self, worker_id: str) -> JobHandle | None:
        """Lease the oldest runnable job, or None when nothing is runnable."""
        ...

    async def ack(self, handle: JobHandle) -> bool:
        """Mark a leased job completed. False if the lease was lost."""
        ...

    async def fail(
        self,
        handle: JobHandle,
        error: str,
        *,
        max_attempts: int,
        backoff_seconds: float,
    ) -> JobState:
        """Record a failed attempt.

        The job is delayed with exponential backoff, or dead-lettered as
        FAILED once ``max_attempts`` is reached. Returns the resulting state.
        """
        ...

    async def reset_stale(self, lease_timeout: float, *, max_attempts: int | None = None) -> int:
        """Return expired leases to the waiting state for redelivery.

        An expired lease counts as an attempt. Once ``max_attempts`` is
        reached the job is dead-lettered as FAILED instead. Returns how many
        leases were recovered either way.
        """
        ...

    async def count_by_state(self, source_key: str | None = None) -> dict[JobState, int]:
        ...

    async def purge_source(self, source_key: str, states: Iterable[JobState]) -> int:
        """Delete a source's jobs in the given states."""
        ...

    async def prune(self, keep_completed: int, keep_failed: int) -> int:
        """Evict the oldest completed and failed jobs beyond the retention limits."""
        ...
