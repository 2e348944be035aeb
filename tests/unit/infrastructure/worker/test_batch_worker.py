"""Unit tests for the Worker poll loop."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from rowsync.config import QueueConfig, WorkerConfig
from rowsync.domain.ingest.handler import ProcessBatch
from rowsync.domain.ingest.model import BatchPayload, JobHandle, JobId, JobState, OutcomeTally
from rowsync.domain.ingest.port import WorkQueue
from rowsync.domain.shared.error import StorageUnavailableError
from rowsync.infrastructure.worker import Worker, WorkerStatus


def leased_job() -> JobHandle:
    return JobHandle(
        id=JobId("batch:parts.csv:0"),
        source_key="parts.csv",
        start_index=0,
        row_count=1,
        state=JobState.ACTIVE,
        lease_token="token",
        payload=BatchPayload(
            source_key="parts.csv", start_index=0, rows=[{"part_number": "P0"}], total_rows=1
        ),
    )


def make_mock_container(queue: AsyncMock, handler: AsyncMock | None = None):
    """Create a mock DI container whose UOW scope hands out the queue and handler."""

    async def get_dependency(cls):
        if cls is WorkQueue:
            return queue
        if cls is ProcessBatch:
            return handler
        raise AssertionError(f"Unexpected dependency {cls}")

    scope = AsyncMock()
    scope.get = AsyncMock(side_effect=get_dependency)

    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=scope)
    context.__aexit__ = AsyncMock(return_value=None)

    container = MagicMock()
    container.return_value = context
    return container


def make_worker(container=None, **queue_overrides) -> Worker:
    worker = Worker(
        "worker-1",
        WorkerConfig(poll_interval=0.01),
        QueueConfig(max_attempts=3, backoff_seconds=2.0, **queue_overrides),
    )
    if container is not None:
        worker.set_container(container)
    return worker


class TestWorkerPollOnce:
    @pytest.mark.asyncio
    async def test_processes_and_acks_leased_batch(self):
        # Arrange
        job = leased_job()
        queue = AsyncMock()
        queue.lease_next.return_value = job
        handler = AsyncMock()
        handler.handle.return_value = OutcomeTally(updated=1)
        worker = make_worker(make_mock_container(queue, handler))

        # Act
        had_job = await worker._poll_once()

        # Assert
        assert had_job is True
        queue.lease_next.assert_awaited_once_with("worker-1")
        handler.handle.assert_awaited_once_with(job)
        queue.ack.assert_awaited_once_with(job)
        assert worker.state.processed_count == 1
        assert worker.state.status == WorkerStatus.IDLE

    @pytest.mark.asyncio
    async def test_returns_false_when_queue_is_empty(self):
        queue = AsyncMock()
        queue.lease_next.return_value = None
        worker = make_worker(make_mock_container(queue))

        assert await worker._poll_once() is False
        queue.ack.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_batch_exception_hands_job_back_for_retry(self):
        # Arrange
        job = leased_job()
        queue = AsyncMock()
        queue.lease_next.return_value = job
        queue.fail.return_value = JobState.DELAYED
        handler = AsyncMock()
        handler.handle.side_effect = RuntimeError("updater down")
        worker = make_worker(make_mock_container(queue, handler))

        # Act
        await worker._poll_once()

        # Assert
        queue.ack.assert_not_awaited()
        queue.fail.assert_awaited_once_with(
            job, "updater down", max_attempts=3, backoff_seconds=2.0
        )
        assert worker.state.failed_count == 1
        assert isinstance(worker.state.error, RuntimeError)

    @pytest.mark.asyncio
    async def test_requires_container(self):
        worker = make_worker()

        with pytest.raises(RuntimeError, match="Container not set"):
            await worker._poll_once()


class TestWorkerLifecycle:
    @pytest.mark.asyncio
    async def test_start_without_container_raises(self):
        with pytest.raises(RuntimeError):
            make_worker().start()

    @pytest.mark.asyncio
    async def test_stop_ends_the_loop(self):
        # Arrange
        queue = AsyncMock()
        queue.lease_next.return_value = None
        worker = make_worker(make_mock_container(queue))

        # Act
        task = worker.start()
        await asyncio.sleep(0.05)
        worker.stop()
        await asyncio.wait_for(task, timeout=1.0)

        # Assert
        assert task.done()
        assert worker.state.status == WorkerStatus.STOPPING
        assert queue.lease_next.await_count >= 1

    @pytest.mark.asyncio
    async def test_survives_unavailable_queue(self):
        # Arrange - the first lease hits a locked database
        queue = AsyncMock()
        queue.lease_next.side_effect = [StorageUnavailableError("database is locked")] + [None] * 50
        worker = make_worker(make_mock_container(queue))

        # Act
        task = worker.start()
        await asyncio.sleep(0.05)
        worker.stop()
        await asyncio.wait_for(task, timeout=1.0)

        # Assert
        assert task.exception() is None
        assert queue.lease_next.await_count > 1
        assert isinstance(worker.state.error, StorageUnavailableError)

    @pytest.mark.asyncio
    async def test_survives_failure_while_handing_job_back(self):
        # Arrange
        queue = AsyncMock()
        queue.lease_next.side_effect = [leased_job()] + [None] * 50
        queue.fail.side_effect = StorageUnavailableError("database is locked")
        handler = AsyncMock()
        handler.handle.side_effect = RuntimeError("updater down")
        worker = make_worker(make_mock_container(queue, handler))

        # Act
        task = worker.start()
        await asyncio.sleep(0.05)
        worker.stop()
        await asyncio.wait_for(task, timeout=1.0)

        # Assert
        assert task.exception() is None
        assert queue.lease_next.await_count > 1
        assert worker.state.current_job is None
