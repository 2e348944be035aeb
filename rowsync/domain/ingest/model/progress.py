"""Progress ledger views and the checkpoint snapshot layout."""

from dataclasses import dataclass
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ProgressRecord(BaseModel):
    """Per-source progress: totals, outcome counts and the checkpoint."""

    source_key: str
    total_rows: int
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    last_processed_row: int = 0
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def processed(self) -> int:
        return self.updated + self.skipped + self.failed

    @property
    def remaining(self) -> int:
        return max(self.total_rows - self.processed, 0)

    @property
    def is_complete(self) -> bool:
        return self.total_rows > 0 and self.processed >= self.total_rows


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RowLevel(_CamelModel):
    last_processed_row: int = 0
    total_rows: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    completed_rows: int = 0
    remaining_rows: int = 0


class JobLevel(_CamelModel):
    waiting: int = 0
    active: int = 0
    delayed: int = 0
    total_remaining_jobs: int = 0


class SnapshotEntry(_CamelModel):
    """One source's entry in the checkpoint snapshot file."""

    row_level: RowLevel
    job_level: JobLevel
    timestamp: datetime

    @classmethod
    def from_progress(cls, progress: ProgressRecord, job_level: JobLevel) -> "SnapshotEntry":
        return cls(
            row_level=RowLevel(
                last_processed_row=progress.last_processed_row,
                total_rows=progress.total_rows,
                updated=progress.updated,
                skipped=progress.skipped,
                failed=progress.failed,
                completed_rows=progress.processed,
                remaining_rows=progress.remaining,
            ),
            job_level=job_level,
            timestamp=progress.timestamp,
        )

    def to_progress(self, source_key: str) -> ProgressRecord:
        return ProgressRecord(
            source_key=source_key,
            total_rows=self.row_level.total_rows,
            updated=self.row_level.updated,
            skipped=self.row_level.skipped,
            failed=self.row_level.failed,
            last_processed_row=self.row_level.last_processed_row,
            timestamp=self.timestamp,
        )


@dataclass(frozen=True)
class ResumePlan:
    start_index: int
    already_complete: bool = False
