from collections.abc import AsyncIterable
from pathlib import Path

from dishka import Provider, from_context, provide
from sqlalchemy.ext.asyncio import AsyncEngine

from rowsync.config import Config
from rowsync.domain.ingest.port import (
    CheckpointSnapshotStore,
    CounterStore,
    MappingStore,
    WorkQueue,
)
from rowsync.infrastructure.persistence.adapter.mapping import JsonMappingStore
from rowsync.infrastructure.persistence.adapter.snapshot import JsonSnapshotStore
from rowsync.infrastructure.persistence.database import create_db_engine
from rowsync.infrastructure.persistence.repository.counter_store import SQLAlchemyCounterStore
from rowsync.infrastructure.persistence.repository.work_queue import SQLAlchemyWorkQueue
from rowsync.util.di.scope import Scope


class PersistenceProvider(Provider):
    config = from_context(provides=Config, scope=Scope.APP)

    @provide(scope=Scope.APP)
    async def get_engine(self, config: Config) -> AsyncIterable[AsyncEngine]:
        engine = create_db_engine(config)
        yield engine
        await engine.dispose()

    # Queue and progress store commit per operation, so they live for the whole process
    @provide(scope=Scope.APP)
    def get_work_queue(self, engine: AsyncEngine) -> WorkQueue:
        return SQLAlchemyWorkQueue(engine)

    @provide(scope=Scope.APP)
    def get_counter_store(self, engine: AsyncEngine) -> CounterStore:
        return SQLAlchemyCounterStore(engine)

    # File-backed stores hold an asyncio.Lock, so one instance per process
    @provide(scope=Scope.APP)
    def get_snapshot_store(self, config: Config) -> CheckpointSnapshotStore:
        return JsonSnapshotStore(Path(config.ingest.checkpoint_file).expanduser())

    @provide(scope=Scope.APP)
    def get_mapping_store(self, config: Config) -> MappingStore:
        return JsonMappingStore(Path(config.ingest.mappings_file).expanduser())
