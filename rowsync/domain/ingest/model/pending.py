"""Ledger writes deferred while the progress store is unreachable."""

from collections import deque
from dataclasses import dataclass, field

from rowsync.domain.ingest.model.outcome import OutcomeTally


@dataclass(frozen=True)
class PendingBatchWrite:
    source_key: str
    start_index: int
    tally: OutcomeTally
    checkpoint_candidate: int
    total_rows: int


@dataclass
class PendingLedgerWrites:
    """Process-wide FIFO of batch results still to be written to the ledger."""

    _items: deque[PendingBatchWrite] = field(default_factory=deque)

    def defer(self, write: PendingBatchWrite) -> None:
        self._items.append(write)

    def drain(self) -> list[PendingBatchWrite]:
        items = list(self._items)
        self._items.clear()
        return items

    def requeue(self, writes: list[PendingBatchWrite]) -> None:
        """Put writes back at the front, preserving their order."""
        self._items.extendleft(reversed(writes))

    def __len__(self) -> int:
        return len(self._items)
