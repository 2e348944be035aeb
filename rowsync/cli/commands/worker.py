"""Worker command - process batch jobs until interrupted."""

import asyncio
import logging
import os
import signal

import cyclopts
from dishka import AsyncContainer

from rowsync.cli.console import get_console
from rowsync.cli.util.bootstrap import bootstrap, fail, load_config, run_in_container
from rowsync.cli.util.paths import RowSyncPaths
from rowsync.domain.shared.error import RowSyncError
from rowsync.infrastructure.worker import WorkerPool

logger = logging.getLogger(__name__)

app = cyclopts.App(name="worker", help="Run the batch worker pool")


@app.default
def worker(concurrency: int | None = None, *, log_file: bool = False) -> None:
    """Lease and process batches until SIGINT or SIGTERM.

    In-flight batches are allowed to finish before exit. Any batch still
    running after the shutdown timeout is redelivered once its lease expires.

    Args:
        concurrency: Number of concurrent workers; defaults to worker.concurrency.
        log_file: Also write logs to the worker log in the state directory.
    """
    console = get_console()
    if log_file:
        os.environ["ROWSYNC_LOG_FILE"] = str(RowSyncPaths().worker_log)
    config = load_config()
    if concurrency is not None:
        config.worker = config.worker.model_copy(update={"concurrency": concurrency})
    bootstrap(config)

    console.info(f"Starting {config.worker.concurrency} workers (Ctrl+C to stop)")
    try:
        asyncio.run(run_in_container(config, _serve))
    except RowSyncError as e:
        fail(e)
    console.success("Workers stopped")


async def _serve(container: AsyncContainer) -> None:
    pool = await container.get(WorkerPool)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    async with pool:
        await stop.wait()
        logger.info("Shutdown requested, draining in-flight batches")
