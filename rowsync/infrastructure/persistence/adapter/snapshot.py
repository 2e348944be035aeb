"""Checkpoint snapshot file adapter."""

import asyncio
import logging
from pathlib import Path

from pydantic import ValidationError

from rowsync.domain.ingest.model import SnapshotEntry
from rowsync.domain.ingest.port import CheckpointSnapshotStore
from rowsync.domain.shared.error import StorageUnavailableError
from rowsync.infrastructure.persistence.adapter.json_file import read_json, write_json

logger = logging.getLogger(__name__)


class JsonSnapshotStore(CheckpointSnapshotStore):
    """Snapshot kept as one JSON document keyed by source.

    Every write re-reads the file and replaces it wholesale. The lock
    serializes writers within a process; across processes the latest
    checkpoint rewrite wins, and each source's entry is refreshed on its
    next checkpoint. File access runs in a worker thread.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._lock = asyncio.Lock()

    async def read_all(self) -> dict[str, SnapshotEntry]:
        raw = await asyncio.to_thread(read_json, self._path, {})
        try:
            return {key: SnapshotEntry.model_validate(entry) for key, entry in raw.items()}
        except (AttributeError, ValidationError) as e:
            raise StorageUnavailableError(f"Corrupt checkpoint snapshot {self._path}: {e}") from e

    async def get(self, source_key: str) -> SnapshotEntry | None:
        return (await self.read_all()).get(source_key)

    async def put(self, source_key: str, entry: SnapshotEntry) -> None:
        async with self._lock:
            snapshot = await asyncio.to_thread(read_json, self._path, {})
            snapshot[source_key] = entry.model_dump(mode="json", by_alias=True)
            await asyncio.to_thread(write_json, self._path, snapshot)

    async def remove(self, source_key: str) -> SnapshotEntry | None:
        async with self._lock:
            snapshot = await asyncio.to_thread(read_json, self._path, {})
            raw = snapshot.pop(source_key, None)
            if raw is None:
                return None
            await asyncio.to_thread(write_json, self._path, snapshot)
        logger.info(f"Removed {source_key} from checkpoint snapshot")
        return SnapshotEntry.model_validate(raw)
