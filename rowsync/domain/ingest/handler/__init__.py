from rowsync.domain.ingest.handler.process_batch import ProcessBatch

__all__ = ["ProcessBatch"]
