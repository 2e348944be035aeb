"""Column mappings file adapter.

File layout::

    {"files": [{"fileKey": "...", "mapping": {"partNumber": "...", ...}, "status": "READY"}]}
"""

import asyncio
import logging
from pathlib import Path

from pydantic import ValidationError

from rowsync.domain.ingest.model import MappingEntry, MappingStatus
from rowsync.domain.ingest.port import MappingStore
from rowsync.domain.shared.error import StorageUnavailableError
from rowsync.infrastructure.persistence.adapter.json_file import read_json, write_json

logger = logging.getLogger(__name__)


class JsonMappingStore(MappingStore):
    def __init__(self, path: Path) -> None:
        self._path = path
        self._lock = asyncio.Lock()

    async def list_entries(self, status: MappingStatus | None = None) -> list[MappingEntry]:
        entries = await self._load()
        if status is not None:
            entries = [entry for entry in entries if entry.status == status]
        return entries

    async def get(self, file_key: str) -> MappingEntry | None:
        for entry in await self._load():
            if entry.file_key == file_key:
                return entry
        return None

    async def mark_completed(self, file_key: str) -> bool:
        async with self._lock:
            data = await asyncio.to_thread(read_json, self._path, {"files": []})
            for raw in data.get("files", []):
                if raw.get("fileKey") == file_key:
                    raw["status"] = MappingStatus.COMPLETED.value
                    await asyncio.to_thread(write_json, self._path, data)
                    logger.info(f"Marked {file_key} as completed")
                    return True
        return False

    async def _load(self) -> list[MappingEntry]:
        data = await asyncio.to_thread(read_json, self._path, {"files": []})
        try:
            return [MappingEntry.model_validate(raw) for raw in data.get("files", [])]
        except (AttributeError, ValidationError) as e:
            raise StorageUnavailableError(f"Corrupt mappings file {self._path}: {e}") from e
