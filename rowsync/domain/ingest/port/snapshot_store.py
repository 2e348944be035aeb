"""CheckpointSnapshotStore port - durable local copy of per-source progress."""

from typing import Protocol

from rowsync.domain.ingest.model import SnapshotEntry


class CheckpointSnapshotStore(Protocol):
    async def read_all(self) -> dict[str, SnapshotEntry]: ...

    async def get(self, source_key: str) -> SnapshotEntry | None: ...

    async def put(self, source_key: str, entry: SnapshotEntry) -> None:
        """Replace one source's entry, rewriting the snapshot wholesale."""
        ...

    async def remove(self, source_key: str) -> SnapshotEntry | None:
        """Drop one source's entry and return it."""
        ...
