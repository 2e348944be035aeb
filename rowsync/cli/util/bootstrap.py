"""Process startup shared by the CLI commands."""

import logging
import sys
from collections.abc import Awaitable, Callable
from typing import NoReturn, TypeVar

import logfire
from dishka import AsyncContainer
from pydantic import ValidationError

from rowsync.application.di import create_container
from rowsync.cli.console import get_console
from rowsync.cli.util.paths import RowSyncPaths
from rowsync.config import Config, configure_logging
from rowsync.domain.shared.error import RowSyncError
from rowsync.infrastructure.persistence.migrate import run_migrations

logger = logging.getLogger(__name__)

T = TypeVar("T")


def load_config() -> Config:
    """Load configuration, exiting with a readable message if it's invalid."""
    console = get_console()
    try:
        # Pydantic Settings populates from env vars at runtime
        return Config()  # type: ignore[call-arg]
    except ValidationError as e:
        console.error("Invalid configuration")
        for err in e.errors():
            loc = ".".join(str(x) for x in err.get("loc", []))
            console.print(f"  [dim]{loc}:[/dim] {err.get('msg', 'Unknown error')}")
        sys.exit(1)


def bootstrap(config: Config) -> None:
    """Configure logging and tracing, then bring the schema up to date.

    Runs before the event loop starts; migrations are synchronous.
    """
    RowSyncPaths().ensure_directories()
    configure_logging(config.logging)

    logfire.configure(send_to_logfire="if-token-present", console=False)
    logfire.instrument_httpx()
    logfire.instrument_sqlalchemy()

    if config.database.auto_migrate:
        logger.debug("Running database migrations")
        run_migrations(config.database.url)


async def run_in_container(
    config: Config, body: Callable[[AsyncContainer], Awaitable[T]]
) -> T:
    """Run ``body`` with a fresh container, closing it afterwards."""
    container = create_container(config)
    try:
        return await body(container)
    finally:
        await container.close()


def fail(error: RowSyncError, *, hint: str | None = None) -> NoReturn:
    """Report a rowsync error and exit non-zero."""
    get_console().error(error.message, hint=hint)
    sys.exit(1)
