"""Queue job identity and state."""

from dataclasses import dataclass
from enum import StrEnum
from typing import NewType

from rowsync.domain.ingest.model.record import BatchPayload

JobId = NewType("JobId", str)


class JobState(StrEnum):
    WAITING = "waiting"
    ACTIVE = "active"
    DELAYED = "delayed"  # Waiting for a retry backoff to elapse
    COMPLETED = "completed"
    FAILED = "failed"  # Dead-lettered after exhausting retries


ALL_STATES: frozenset[JobState] = frozenset(JobState)
PENDING_STATES: frozenset[JobState] = frozenset(
    {JobState.WAITING, JobState.ACTIVE, JobState.DELAYED}
)
TERMINAL_STATES: frozenset[JobState] = frozenset({JobState.COMPLETED, JobState.FAILED})


def job_id(source_key: str, start_index: int, salt: str | None = None) -> JobId:
    """Deterministic job identifier for the batch starting at ``start_index``.

    Resubmitting the same batch always yields the same identifier. A salt
    scopes identifiers to one partitioner run when needed.
    """
    base = f"batch:{source_key}:{start_index}"
    return JobId(f"{base}:{salt}" if salt else base)


@dataclass(frozen=True)
class JobHandle:
    """A job as seen by the queue."""

    id: JobId
    source_key: str
    start_index: int
    row_count: int
    state: JobState
    attempts: int = 0
    lease_token: str | None = None
    payload: BatchPayload | None = None  # Only populated for leased jobs

    @property
    def end_index(self) -> int:
        return self.start_index + self.row_count
