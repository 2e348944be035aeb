"""RecordUpdater port - the external per-record update service."""

from typing import Protocol

from rowsync.domain.ingest.model import RowRecord, UpdateOutcome


class RecordUpdater(Protocol):
    async def apply(self, record: RowRecord) -> UpdateOutcome:
        """Apply one record. May raise; the caller counts that as a failure."""
        ...
