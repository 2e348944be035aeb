from rowsync.domain.ingest.service.dispatcher import Dispatcher
from rowsync.domain.ingest.service.ingest import IngestReport, IngestService
from rowsync.domain.ingest.service.ledger import LedgerKeys, ProgressLedger
from rowsync.domain.ingest.service.partitioner import partition
from rowsync.domain.ingest.service.resume import ResumePlanner
from rowsync.domain.ingest.service.row_source import RowSource, normalize_header

__all__ = [
    "Dispatcher",
    "IngestReport",
    "IngestService",
    "LedgerKeys",
    "ProgressLedger",
    "ResumePlanner",
    "RowSource",
    "normalize_header",
    "partition",
]
