from rowsync.infrastructure.worker.di import WorkerProvider
from rowsync.infrastructure.worker.worker import Worker, WorkerPool, WorkerState, WorkerStatus

__all__ = ["Worker", "WorkerPool", "WorkerProvider", "WorkerState", "WorkerStatus"]
