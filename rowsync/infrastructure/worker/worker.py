"""Worker and WorkerPool for pull-based batch processing."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum

from dishka import AsyncContainer

from rowsync.config import QueueConfig, WorkerConfig
from rowsync.domain.ingest.handler import ProcessBatch
from rowsync.domain.ingest.model import JobHandle, JobState
from rowsync.domain.ingest.port import WorkQueue
from rowsync.domain.ingest.service import ProgressLedger
from rowsync.domain.shared.error import InfrastructureError, RowSyncError
from rowsync.util.di.scope import Scope

logger = logging.getLogger(__name__)


class WorkerStatus(Enum):
    """Status of a running worker."""

    IDLE = "idle"
    LEASING = "leasing"
    PROCESSING = "processing"
    STOPPING = "stopping"


@dataclass
class WorkerState:
    """Runtime state for a running worker (not persisted).

    Attributes:
        status: Current worker status.
        current_job: Job currently being processed.
        last_lease_at: When the last lease was taken.
        processed_count: Batches acknowledged.
        failed_count: Batches handed back to the queue for retry.
        error: Last error if any.
    """

    status: WorkerStatus = WorkerStatus.IDLE
    current_job: JobHandle | None = None
    last_lease_at: datetime | None = None
    processed_count: int = 0
    failed_count: int = 0
    error: Exception | None = None


class Worker:
    """Leases one batch at a time and delegates it to ProcessBatch.

    Each poll runs in its own UOW scope. A batch-level exception hands the
    job back to the queue, which delays it with exponential backoff or
    dead-letters it once attempts run out. Row-level failures never reach
    here; ProcessBatch counts them.
    """

    def __init__(self, name: str, worker_config: WorkerConfig, queue_config: QueueConfig) -> None:
        self._name = name
        self._poll_interval = worker_config.poll_interval
        self._max_attempts = queue_config.max_attempts
        self._backoff_seconds = queue_config.backoff_seconds
        self._state = WorkerState()
        self._shutdown = False
        self._task: asyncio.Task | None = None
        self._container: AsyncContainer | None = None

    @property
    def name(self) -> str:
        return self._name

    @property
    def state(self) -> WorkerState:
        """Current worker state."""
        return self._state

    @property
    def task(self) -> asyncio.Task | None:
        return self._task

    def set_container(self, container: AsyncContainer) -> None:
        """Set the DI container for scoped dependency resolution."""
        self._container = container

    def start(self) -> asyncio.Task:
        """Start the worker in a background task."""
        if self._container is None:
            raise RuntimeError("Container not set. Call set_container() first.")

        self._shutdown = False
        self._task = asyncio.create_task(self._run(), name=f"worker-{self.name}")
        logger.info(f"Worker '{self.name}' started")
        return self._task

    def stop(self) -> None:
        """Signal the worker to stop gracefully.

        The worker finishes its current batch and takes no new lease.
        """
        self._shutdown = True
        self._state.status = WorkerStatus.STOPPING
        logger.info(f"Worker '{self.name}' stopping...")

    async def _run(self) -> None:
        """Main worker loop."""
        try:
            while not self._shutdown:
                try:
                    had_job = await self._poll_once()
                except InfrastructureError as e:
                    # A leased job left active here comes back through lease expiry
                    logger.error(f"Worker '{self.name}' poll failed, retrying: {e.message}")
                    self._state.error = e
                    self._state.current_job = None
                    if not self._shutdown:
                        self._state.status = WorkerStatus.IDLE
                    had_job = False
                if not had_job and not self._shutdown:
                    await asyncio.sleep(self._poll_interval)
        except asyncio.CancelledError:
            logger.info(f"Worker '{self.name}' cancelled")
            raise
        except Exception as e:
            logger.exception(f"Worker '{self.name}' crashed: {e}")
            self._state.error = e
            raise
        finally:
            logger.info(f"Worker '{self.name}' stopped")

    async def _poll_once(self) -> bool:
        """Lease and process at most one batch.

        Returns:
            True if a batch was leased, False if the queue had nothing runnable.
        """
        if self._container is None:
            raise RuntimeError("Container not set")

        self._state.status = WorkerStatus.LEASING

        async with self._container(scope=Scope.UOW) as scope:
            queue = await scope.get(WorkQueue)
            job = await queue.lease_next(self.name)

            if job is None:
                self._state.status = WorkerStatus.IDLE
                return False

            self._state.status = WorkerStatus.PROCESSING
            self._state.current_job = job
            self._state.last_lease_at = datetime.now(UTC)

            try:
                handler = await scope.get(ProcessBatch)
                await handler.handle(job)
                await queue.ack(job)
                self._state.processed_count += 1

            except Exception as e:
                self._state.failed_count += 1
                self._state.error = e
                logger.error(f"Worker '{self.name}' batch {job.id} failed: {e}")
                state = await queue.fail(
                    job,
                    str(e),
                    max_attempts=self._max_attempts,
                    backoff_seconds=self._backoff_seconds,
                )
                if state == JobState.FAILED:
                    logger.error(f"Batch {job.id} dead-lettered")

            finally:
                self._state.current_job = None
                if not self._shutdown:
                    self._state.status = WorkerStatus.IDLE

        return True


class WorkerPool:
    """Runs ``concurrency`` workers plus queue housekeeping.

    Housekeeping returns stale leases to the queue (redelivery), prunes
    finished jobs beyond the retention limits and periodically logs
    per-source progress.

    Usage:
        pool = WorkerPool(container, worker_config, queue_config)
        async with pool:
            await stop_event.wait()
    """

    def __init__(
        self,
        container: AsyncContainer | None,
        worker_config: WorkerConfig,
        queue_config: QueueConfig,
    ) -> None:
        self._container = container
        self._worker_config = worker_config
        self._queue_config = queue_config
        self._workers = [
            Worker(f"worker-{i + 1}", worker_config, queue_config)
            for i in range(worker_config.concurrency)
        ]
        self._background: list[asyncio.Task] = []
        self._shutdown = False

    def set_container(self, container: AsyncContainer) -> None:
        """Set the DI container for all workers."""
        self._container = container
        for worker in self._workers:
            worker.set_container(container)

    @property
    def workers(self) -> list[Worker]:
        """List of managed workers."""
        return self._workers

    async def start(self) -> None:
        """Start all workers and the housekeeping tasks."""
        if self._container is None:
            raise RuntimeError("Container not set. Call set_container() first.")

        self._shutdown = False
        for worker in self._workers:
            worker.set_container(self._container)
            worker.start()

        if self._worker_config.stale_lease_interval > 0:
            self._background.append(
                asyncio.create_task(self._run_housekeeping(), name="queue-housekeeping")
            )
        if self._worker_config.progress_interval > 0:
            self._background.append(
                asyncio.create_task(self._run_progress_report(), name="progress-report")
            )

        logger.info(f"WorkerPool started with {len(self._workers)} workers")

    async def stop(self, timeout: float | None = None) -> None:
        """Stop all workers gracefully.

        Args:
            timeout: Maximum time to wait for in-flight batches; defaults to
                the configured shutdown timeout. Batches still running after
                that are cancelled and come back through lease expiry.
        """
        self._shutdown = True
        timeout = self._worker_config.shutdown_timeout if timeout is None else timeout

        for worker in self._workers:
            worker.stop()

        for task in self._background:
            if not task.done():
                task.cancel()
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)
            self._background = []

        tasks = [w.task for w in self._workers if w.task and not w.task.done()]
        if tasks:
            _, pending = await asyncio.wait(tasks, timeout=timeout)
            for task in pending:
                task.cancel()
            if pending:
                logger.warning(f"Cancelled {len(pending)} workers still busy after {timeout}s")

        try:
            await self._flush_deferred()
        except RowSyncError as e:
            logger.error(f"Deferred ledger writes not flushed before shutdown: {e.message}")

        logger.info("WorkerPool stopped")

    async def __aenter__(self) -> "WorkerPool":
        """Start the pool as async context manager."""
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        """Stop the pool on context exit."""
        await self.stop()

    async def _run_housekeeping(self) -> None:
        """Periodically reset stale leases, prune finished jobs and flush deferred ledger writes."""
        while not self._shutdown:
            try:
                await asyncio.sleep(self._worker_config.stale_lease_interval)

                if self._shutdown or self._container is None:
                    break

                async with self._container(scope=Scope.UOW) as scope:
                    queue = await scope.get(WorkQueue)
                    await queue.reset_stale(
                        self._queue_config.lease_timeout,
                        max_attempts=self._queue_config.max_attempts,
                    )
                    await queue.prune(
                        self._queue_config.keep_completed, self._queue_config.keep_failed
                    )

                await self._flush_deferred()

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Queue housekeeping failed: {e}")

    async def _flush_deferred(self) -> None:
        """Write ledger results held back while the progress store was unreachable."""
        if self._container is None:
            return
        async with self._container(scope=Scope.UOW) as scope:
            handler = await scope.get(ProcessBatch)
            await handler.flush_deferred()

    async def _run_progress_report(self) -> None:
        """Periodically log progress until every tracked source is complete."""
        while not self._shutdown:
            try:
                await asyncio.sleep(self._worker_config.progress_interval)

                if self._shutdown or self._container is None:
                    break

                async with self._container(scope=Scope.UOW) as scope:
                    ledger = await scope.get(ProgressLedger)
                    if await self.report_progress(ledger):
                        logger.info("All tracked sources are fully processed")
                        break

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Progress report failed: {e}")

    @staticmethod
    async def report_progress(ledger: ProgressLedger) -> bool:
        """Log one line per source. Returns True when all sources are complete.

        With no sources tracked yet there is nothing to finish, so this
        returns False and reporting continues.
        """
        sources = await ledger.list_sources()
        if not sources:
            logger.info("No sources tracked yet, waiting for work")
            return False

        all_complete = True
        for source_key in sources:
            progress = await ledger.read(source_key)
            if progress is None:
                continue
            logger.info(
                f"{source_key}: {progress.processed}/{progress.total_rows} rows "
                f"({progress.updated} updated, {progress.skipped} skipped, "
                f"{progress.failed} failed), checkpoint {progress.last_processed_row}"
            )
            all_complete = all_complete and progress.is_complete
        return all_complete
