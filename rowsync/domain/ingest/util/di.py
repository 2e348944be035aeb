"""DI provider for the ingest domain.

Services are UOW-scoped: one set per ingest run or per leased batch.
"""

from dishka import Provider, provide

from rowsync.config import Config
from rowsync.domain.ingest.handler import ProcessBatch
from rowsync.domain.ingest.model import PendingLedgerWrites
from rowsync.domain.ingest.port import (
    BlobStore,
    CheckpointSnapshotStore,
    CounterStore,
    MappingStore,
    RecordUpdater,
    WorkQueue,
)
from rowsync.domain.ingest.service import (
    Dispatcher,
    IngestService,
    LedgerKeys,
    ProgressLedger,
    ResumePlanner,
    RowSource,
)
from rowsync.util.di.scope import Scope


class IngestProvider(Provider):
    @provide(scope=Scope.APP)
    def get_ledger_keys(self, config: Config) -> LedgerKeys:
        return LedgerKeys(prefix=config.progress.key_prefix)

    @provide(scope=Scope.APP)
    def get_pending_writes(self) -> PendingLedgerWrites:
        """Outlives any single batch so deferred writes reach the next checkpoint."""
        return PendingLedgerWrites()

    @provide(scope=Scope.UOW)
    def get_row_source(self, config: Config, blob_store: BlobStore) -> RowSource:
        return RowSource(
            blob_store=blob_store,
            bucket=config.storage.bucket,
            skip_lines=config.ingest.skip_lines,
            encoding=config.ingest.encoding,
            delimiter=config.ingest.delimiter,
        )

    @provide(scope=Scope.UOW)
    def get_ledger(
        self,
        store: CounterStore,
        snapshots: CheckpointSnapshotStore,
        queue: WorkQueue,
        keys: LedgerKeys,
        pending: PendingLedgerWrites,
    ) -> ProgressLedger:
        return ProgressLedger(
            store=store, snapshots=snapshots, queue=queue, keys=keys, pending=pending
        )

    @provide(scope=Scope.UOW)
    def get_resume_planner(self, queue: WorkQueue, ledger: ProgressLedger) -> ResumePlanner:
        return ResumePlanner(queue=queue, ledger=ledger)

    @provide(scope=Scope.UOW)
    def get_dispatcher(self, queue: WorkQueue, ledger: ProgressLedger) -> Dispatcher:
        return Dispatcher(queue=queue, ledger=ledger)

    @provide(scope=Scope.UOW)
    def get_ingest_service(
        self,
        config: Config,
        row_source: RowSource,
        ledger: ProgressLedger,
        planner: ResumePlanner,
        dispatcher: Dispatcher,
        mappings: MappingStore,
        blob_store: BlobStore,
    ) -> IngestService:
        return IngestService(
            row_source=row_source,
            ledger=ledger,
            planner=planner,
            dispatcher=dispatcher,
            mappings=mappings,
            blob_store=blob_store,
            bucket=config.storage.bucket,
            batch_size=config.ingest.batch_size,
        )

    @provide(scope=Scope.UOW)
    def get_process_batch(
        self, updater: RecordUpdater, ledger: ProgressLedger, mappings: MappingStore
    ) -> ProcessBatch:
        return ProcessBatch(updater=updater, ledger=ledger, mappings=mappings)
