from rowsync.domain.ingest.port.blob_store import BlobStore
from rowsync.domain.ingest.port.counter_store import CounterStore
from rowsync.domain.ingest.port.mapping_store import MappingStore
from rowsync.domain.ingest.port.record_updater import RecordUpdater
from rowsync.domain.ingest.port.snapshot_store import CheckpointSnapshotStore
from rowsync.domain.ingest.port.work_queue import WorkQueue

__all__ = [
    "BlobStore",
    "CheckpointSnapshotStore",
    "CounterStore",
    "MappingStore",
    "RecordUpdater",
    "WorkQueue",
]
