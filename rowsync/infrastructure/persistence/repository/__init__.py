from rowsync.infrastructure.persistence.repository.counter_store import SQLAlchemyCounterStore
from rowsync.infrastructure.persistence.repository.work_queue import SQLAlchemyWorkQueue

__all__ = ["SQLAlchemyCounterStore", "SQLAlchemyWorkQueue"]
