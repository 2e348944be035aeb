"""MappingStore port - per-source column mappings and readiness."""

from typing import Protocol

from rowsync.domain.ingest.model import MappingEntry, MappingStatus


class MappingStore(Protocol):
    async def list_entries(self, status: MappingStatus | None = None) -> list[MappingEntry]: ...

    async def get(self, file_key: str) -> MappingEntry | None: ...

    async def mark_completed(self, file_key: str) -> bool:
        """Flag a source as fully processed. False if it has no entry."""
        ...
