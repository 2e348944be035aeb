"""Sources command - list column mappings."""

import asyncio

import cyclopts
from dishka import AsyncContainer

from rowsync.cli.console import get_console
from rowsync.cli.util.bootstrap import bootstrap, fail, load_config, run_in_container
from rowsync.domain.ingest.model import MappingEntry, MappingStatus
from rowsync.domain.ingest.port import MappingStore
from rowsync.domain.shared.error import RowSyncError

app = cyclopts.App(name="sources", help="List sources and their column mappings")


@app.default
def sources(status: MappingStatus | None = None) -> None:
    """List entries of the mappings file.

    Args:
        status: Only show entries with this status.
    """
    console = get_console()
    config = load_config()
    bootstrap(config)

    async def run(container: AsyncContainer) -> list[MappingEntry]:
        store = await container.get(MappingStore)
        return await store.list_entries(status)

    try:
        entries = asyncio.run(run_in_container(config, run))
    except RowSyncError as e:
        fail(e)

    if not entries:
        console.info(f"No mappings in {config.ingest.mappings_file}")
        return

    rows = [
        {
            "file_key": entry.file_key,
            "status": entry.status.value,
            **entry.mapping.model_dump(),
        }
        for entry in entries
    ]
    console.table(
        rows,
        [
            ("file_key", "Source"),
            ("status", "Status"),
            ("part_number", "Part number"),
            ("category", "Category"),
            ("manufacturer", "Manufacturer"),
        ],
    )
