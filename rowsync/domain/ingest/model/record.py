"""Rows, batches and the payload that travels through the queue."""

from typing import NewType

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

SourceKey = NewType("SourceKey", str)

# Normalized field name -> cell value. Treated as immutable once produced.
RowRecord = dict[str, str]

# Logical keys copied from mapped physical columns
PART_NUMBER = "part_number"
CATEGORY = "category"
MANUFACTURER = "manufacturer"


class Batch(BaseModel):
    """A contiguous, index-addressed slice of a source's rows.

    ``start_index`` is fixed when the partitioner creates the batch and is
    never recomputed downstream.
    """

    model_config = ConfigDict(frozen=True)

    source_key: str
    start_index: int = Field(ge=0)
    rows: tuple[RowRecord, ...]

    @property
    def size(self) -> int:
        return len(self.rows)

    @property
    def end_index(self) -> int:
        """Absolute index one past the last row."""
        return self.start_index + len(self.rows)


class BatchPayload(BaseModel):
    """Job payload: ``{sourceKey, startIndex, rows, totalRows}``."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    source_key: str
    start_index: int = Field(ge=0)
    rows: list[RowRecord]
    total_rows: int = Field(ge=0)

    @classmethod
    def from_batch(cls, batch: Batch, total_rows: int) -> "BatchPayload":
        return cls(
            source_key=batch.source_key,
            start_index=batch.start_index,
            rows=list(batch.rows),
            total_rows=total_rows,
        )

    @property
    def checkpoint_candidate(self) -> int:
        """Row index this batch can advance the checkpoint to."""
        return min(self.start_index + len(self.rows), self.total_rows)
