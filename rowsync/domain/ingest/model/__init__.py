from rowsync.domain.ingest.model.job import (
    ALL_STATES,
    PENDING_STATES,
    TERMINAL_STATES,
    JobHandle,
    JobId,
    JobState,
    job_id,
)
from rowsync.domain.ingest.model.mapping import ColumnMapping, MappingEntry, MappingStatus
from rowsync.domain.ingest.model.outcome import (
    Accepted,
    Duplicate,
    Failed,
    OutcomeTally,
    Rejected,
    Skipped,
    SubmitResult,
    Updated,
    UpdateOutcome,
)
from rowsync.domain.ingest.model.pending import PendingBatchWrite, PendingLedgerWrites
from rowsync.domain.ingest.model.progress import (
    JobLevel,
    ProgressRecord,
    ResumePlan,
    RowLevel,
    SnapshotEntry,
)
from rowsync.domain.ingest.model.record import Batch, BatchPayload, RowRecord, SourceKey

__all__ = [
    "ALL_STATES",
    "PENDING_STATES",
    "TERMINAL_STATES",
    "Accepted",
    "Batch",
    "BatchPayload",
    "ColumnMapping",
    "Duplicate",
    "Failed",
    "JobHandle",
    "JobId",
    "JobLevel",
    "JobState",
    "MappingEntry",
    "MappingStatus",
    "OutcomeTally",
    "PendingBatchWrite",
    "PendingLedgerWrites",
    "ProgressRecord",
    "Rejected",
    "ResumePlan",
    "RowLevel",
    "RowRecord",
    "Skipped",
    "SnapshotEntry",
    "SourceKey",
    "SubmitResult",
    "Updated",
    "UpdateOutcome",
    "job_id",
]
