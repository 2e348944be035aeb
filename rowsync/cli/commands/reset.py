"""Reset command - erase progress for a source."""

import asyncio
import sys

import cyclopts
from dishka import AsyncContainer

from rowsync.cli.console import get_console
from rowsync.cli.util.bootstrap import bootstrap, fail, load_config, run_in_container
from rowsync.domain.ingest.service import ProgressLedger
from rowsync.domain.shared.error import RowSyncError
from rowsync.util.di.scope import Scope

app = cyclopts.App(name="reset", help="Erase recorded progress for a source")


@app.default
def reset(source_key: str, *, force: bool = False) -> None:
    """Remove counters, checkpoint and snapshot entry for a source.

    The next ingest then starts from row 0. Refused while the source still
    has queued or running jobs.

    Args:
        source_key: Source to reset.
        force: Skip confirmation prompt.
    """
    console = get_console()
    if not force and not console.confirm(f"Erase all progress for {source_key}?"):
        console.info("Aborted")
        sys.exit(1)

    config = load_config()
    bootstrap(config)

    async def run(container: AsyncContainer) -> None:
        async with container(scope=Scope.UOW) as scope:
            ledger = await scope.get(ProgressLedger)
            await ledger.reset(source_key)

    try:
        asyncio.run(run_in_container(config, run))
    except RowSyncError as e:
        fail(e)
    console.success(f"Progress for {source_key} erased")
