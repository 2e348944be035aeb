"""Status command - show per-source progress."""

import asyncio

import cyclopts
from dishka import AsyncContainer

from rowsync.cli.console import get_console, percent
from rowsync.cli.util.bootstrap import bootstrap, fail, load_config, run_in_container
from rowsync.domain.ingest.model import JobState
from rowsync.domain.ingest.port import WorkQueue
from rowsync.domain.ingest.service import ProgressLedger
from rowsync.domain.shared.error import NotFoundError, RowSyncError
from rowsync.util.di.scope import Scope

app = cyclopts.App(name="status", help="Show progress for tracked sources")

STATUS_COLUMNS = [
    ("source_key", "Source"),
    ("progress", "Progress"),
    ("processed", "Processed"),
    ("total_rows", "Total"),
    ("updated", "Updated"),
    ("skipped", "Skipped"),
    ("failed", "Failed"),
    ("checkpoint", "Checkpoint"),
    ("jobs", "Jobs w/a/d/f"),
]


@app.default
def status(source_key: str | None = None) -> None:
    """Show row-level and job-level progress.

    Args:
        source_key: Show only this source.
    """
    console = get_console()
    config = load_config()
    bootstrap(config)

    async def run(container: AsyncContainer) -> list[dict[str, object]]:
        async with container(scope=Scope.UOW) as scope:
            ledger = await scope.get(ProgressLedger)
            queue = await scope.get(WorkQueue)
            sources = [source_key] if source_key else await ledger.list_sources()

            rows = []
            for key in sources:
                progress = await ledger.read(key)
                if progress is None:
                    raise NotFoundError(f"No progress recorded for {key}")
                counts = await queue.count_by_state(key)
                jobs = "/".join(
                    str(counts.get(state, 0))
                    for state in (
                        JobState.WAITING,
                        JobState.ACTIVE,
                        JobState.DELAYED,
                        JobState.FAILED,
                    )
                )
                rows.append(
                    {
                        "source_key": key,
                        "progress": "done"
                        if progress.is_complete
                        else percent(progress.processed, progress.total_rows),
                        "processed": progress.processed,
                        "total_rows": progress.total_rows,
                        "updated": progress.updated,
                        "skipped": progress.skipped,
                        "failed": progress.failed,
                        "checkpoint": progress.last_processed_row,
                        "jobs": jobs,
                    }
                )
            return rows

    try:
        rows = asyncio.run(run_in_container(config, run))
    except RowSyncError as e:
        fail(e)

    if not rows:
        console.info("No sources tracked yet")
        return
    console.table(rows, STATUS_COLUMNS, title="Progress")
