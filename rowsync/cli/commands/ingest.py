"""Ingest command - partition sources into batch jobs."""

import asyncio
import sys

import cyclopts
from dishka import AsyncContainer

from rowsync.cli.console import get_console
from rowsync.cli.util.bootstrap import bootstrap, fail, load_config, run_in_container
from rowsync.domain.ingest.service import IngestReport, IngestService
from rowsync.domain.shared.error import RowSyncError
from rowsync.util.di.scope import Scope

app = cyclopts.App(name="ingest", help="Dispatch batch jobs for one or more sources")

REPORT_COLUMNS = [
    ("source_key", "Source"),
    ("status", "Status"),
    ("total_rows", "Rows"),
    ("resume_from", "Resume from"),
    ("accepted", "Accepted"),
    ("duplicates", "Duplicate"),
    ("rejected", "Rejected"),
    ("error", "Error"),
]


@app.default
def ingest(
    source_key: str | None = None,
    *,
    latest_folder: bool = False,
    ready: bool = False,
) -> None:
    """Read sources, split them into batches and enqueue the batches.

    Already-processed rows are skipped, so running this again after a crash
    only dispatches what is missing.

    Args:
        source_key: Object key of a single source file.
        latest_folder: Ingest every .csv in the newest folder of the bucket.
        ready: Ingest every source whose column mapping is marked READY.
    """
    console = get_console()
    selected = sum([source_key is not None, latest_folder, ready])
    if selected != 1:
        console.error(
            "Choose exactly one of SOURCE_KEY, --latest-folder or --ready",
            hint="Example: rowsync ingest exports/2024-06-01/parts.csv",
        )
        sys.exit(1)

    config = load_config()
    bootstrap(config)

    async def run(container: AsyncContainer) -> list[IngestReport]:
        async with container(scope=Scope.UOW) as scope:
            service = await scope.get(IngestService)
            if source_key is not None:
                return [await service.ingest(source_key)]
            if latest_folder:
                return await service.ingest_latest_folder()
            return await service.ingest_ready()

    try:
        reports = asyncio.run(run_in_container(config, run))
    except RowSyncError as e:
        fail(e, hint="Run 'rowsync reset SOURCE_KEY' if the source file was replaced")

    if not reports:
        console.warning("No sources to ingest")
        return

    console.table([_report_row(r) for r in reports], REPORT_COLUMNS, title="Ingest")
    if any(r.error is not None for r in reports):
        sys.exit(1)
    console.success(f"Dispatched {sum(r.accepted for r in reports)} batches")


def _report_row(report: IngestReport) -> dict[str, object]:
    return {
        "source_key": report.source_key,
        "status": report.status,
        "total_rows": report.total_rows,
        "resume_from": report.resume_from,
        "accepted": report.accepted,
        "duplicates": report.duplicates,
        "rejected": report.rejected,
        "error": report.error or "",
    }
