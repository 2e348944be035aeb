"""Main CLI application using Cyclopts.

Each command builds its own DI container; there is no long-lived server.
"""

import cyclopts

from rowsync.cli.commands import ingest, reset, sources, status, worker

app = cyclopts.App(
    name="rowsync",
    help="rowsync - resumable batch sync of CSV rows to a record API",
)

app.command(ingest.app, name="ingest")
app.command(worker.app, name="worker")
app.command(status.app, name="status")
app.command(reset.app, name="reset")
app.command(sources.app, name="sources")
