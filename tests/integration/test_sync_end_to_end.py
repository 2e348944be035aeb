"""End-to-end: ingest a source, drain it with the worker pool, resume after failures.

Runs the real DI graph against SQLite, local blob storage and JSON state
files; only the record-update service is replaced.
"""

import asyncio
import json
from pathlib import Path

import pytest
import pytest_asyncio
from dishka import Provider, make_async_container, provide
from sqlalchemy.ext.asyncio import AsyncEngine

from rowsync.application.di import create_container
from rowsync.config import Config
from rowsync.domain.ingest.handler import ProcessBatch
from rowsync.domain.ingest.model import JobState, RowRecord, Skipped, Updated, UpdateOutcome
from rowsync.domain.ingest.port import RecordUpdater, WorkQueue
from rowsync.domain.ingest.service import IngestService, ProgressLedger
from rowsync.domain.ingest.util.di import IngestProvider
from rowsync.infrastructure.persistence import PersistenceProvider
from rowsync.infrastructure.persistence.database import create_tables
from rowsync.infrastructure.storage import StorageProvider
from rowsync.infrastructure.worker import WorkerPool, WorkerProvider
from rowsync.util.di.scope import Scope

SOURCE = "2024-06-01/parts.csv"
SKIPPED = {"P-0005", "P-0006", "P-0007"}
BROKEN = {"P-0010", "P-0011"}


class ScriptedUpdater:
    """Updates every row except a fixed set of skips and failures."""

    def __init__(self) -> None:
        self.calls: list[str] = []

    async def apply(self, record: RowRecord) -> UpdateOutcome:
        part_number = record["part_number"]
        self.calls.append(part_number)
        if part_number in BROKEN:
            raise RuntimeError(f"cannot update {part_number}")
        if part_number in SKIPPED:
            return Skipped("unchanged")
        return Updated()


class ScriptedUpdaterProvider(Provider):
    def __init__(self, updater: ScriptedUpdater) -> None:
        super().__init__()
        self._updater = updater

    @provide(scope=Scope.APP)
    def get_record_updater(self) -> RecordUpdater:
        return self._updater


@pytest.fixture
def updater() -> ScriptedUpdater:
    return ScriptedUpdater()


@pytest_asyncio.fixture
async def container(config: Config, updater: ScriptedUpdater):
    container = make_async_container(
        PersistenceProvider(),
        StorageProvider(),
        IngestProvider(),
        WorkerProvider(),
        ScriptedUpdaterProvider(updater),
        context={Config: config},
        scopes=Scope,  # type: ignore[arg-type]
    )
    await create_tables(await container.get(AsyncEngine))
    yield container
    await container.close()


async def ingest(container, source_key: str = SOURCE):
    async with container(scope=Scope.UOW) as scope:
        service = await scope.get(IngestService)
        return await service.ingest(source_key)


async def read_progress(container, source_key: str = SOURCE):
    async with container(scope=Scope.UOW) as scope:
        ledger = await scope.get(ProgressLedger)
        return await ledger.read(source_key)


async def drain(container, timeout: float = 10.0) -> None:
    """Run the worker pool until the source is complete."""
    pool = await container.get(WorkerPool)
    async with pool:
        async with asyncio.timeout(timeout):
            while True:
                progress = await read_progress(container)
                if progress is not None and progress.is_complete:
                    break
                await asyncio.sleep(0.02)


class TestEndToEnd:
    @pytest.mark.asyncio
    async def test_45_rows_in_batches_of_20(self, container, config, write_source, make_csv):
        # Arrange
        write_source(SOURCE, make_csv(45))
        Path(config.ingest.mappings_file).write_text(
            json.dumps({"files": [{"fileKey": SOURCE, "status": "READY"}]})
        )

        # Act
        report = await ingest(container)
        await drain(container)

        # Assert - dispatch
        assert report.accepted == 3

        # Assert - final ledger
        progress = await read_progress(container)
        assert (progress.updated, progress.skipped, progress.failed) == (40, 3, 2)
        assert progress.last_processed_row == 45
        assert progress.is_complete

        # Assert - snapshot file and mappings
        snapshot = json.loads(Path(config.ingest.checkpoint_file).read_text())
        assert snapshot[SOURCE]["rowLevel"]["lastProcessedRow"] == 45
        assert snapshot[SOURCE]["rowLevel"]["completedRows"] == 45
        mappings = json.loads(Path(config.ingest.mappings_file).read_text())
        assert mappings["files"][0]["status"] == "COMPLETED"

    @pytest.mark.asyncio
    async def test_reingest_of_complete_source_dispatches_nothing(
        self, container, updater, write_source, make_csv
    ):
        write_source(SOURCE, make_csv(45))
        await ingest(container)
        await drain(container)
        calls = len(updater.calls)

        report = await ingest(container)

        assert report.already_complete is True
        assert report.accepted == 0
        assert len(updater.calls) == calls

    @pytest.mark.asyncio
    async def test_redelivered_batch_is_not_double_counted(
        self, container, config, write_source, make_csv
    ):
        # Arrange - a worker finished batch 0 but died before acknowledging it
        write_source(SOURCE, make_csv(45))
        await ingest(container)
        queue = await container.get(WorkQueue)
        job = await queue.lease_next("crashed-worker")
        async with container(scope=Scope.UOW) as scope:
            handler = await scope.get(ProcessBatch)
            await handler.handle(job)
        assert await queue.reset_stale(lease_timeout=-1) == 1

        # Act
        await drain(container)

        # Assert
        progress = await read_progress(container)
        assert progress.processed == 45
        assert (progress.updated, progress.skipped, progress.failed) == (40, 3, 2)

    @pytest.mark.asyncio
    async def test_restart_mid_source_resumes_from_checkpoint(
        self, container, updater, write_source, make_csv
    ):
        # Arrange - first two batches processed, then everything queued is lost
        write_source(SOURCE, make_csv(100))
        await ingest(container)
        queue = await container.get(WorkQueue)
        for _ in range(2):
            job = await queue.lease_next("worker-1")
            async with container(scope=Scope.UOW) as scope:
                await (await scope.get(ProcessBatch)).handle(job)
            await queue.ack(job)
        await queue.purge_source(SOURCE, list(JobState))
        updater.calls.clear()

        # Act
        report = await ingest(container)
        await drain(container)

        # Assert
        assert report.resume_from == 40
        assert report.accepted == 3
        assert updater.calls[0] == "P-0040"
        assert (await read_progress(container)).processed == 100


class TestApplicationContainer:
    @pytest.mark.asyncio
    async def test_resolves_services_and_worker_pool(self, config: Config):
        container = create_container(config)
        try:
            await create_tables(await container.get(AsyncEngine))
            pool = await container.get(WorkerPool)
            async with container(scope=Scope.UOW) as scope:
                service = await scope.get(IngestService)
                handler = await scope.get(ProcessBatch)

            assert len(pool.workers) == config.worker.concurrency
            assert service.batch_size == 20
            assert isinstance(handler, ProcessBatch)
        finally:
            await container.close()
