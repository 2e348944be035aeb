from rowsync.infrastructure.persistence.adapter.mapping import JsonMappingStore
from rowsync.infrastructure.persistence.adapter.snapshot import JsonSnapshotStore

__all__ = ["JsonMappingStore", "JsonSnapshotStore"]
