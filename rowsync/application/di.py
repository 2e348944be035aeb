from dishka import AsyncContainer, make_async_container

from rowsync.config import Config
from rowsync.domain.ingest.util.di import IngestProvider
from rowsync.infrastructure.persistence import PersistenceProvider
from rowsync.infrastructure.storage import StorageProvider
from rowsync.infrastructure.updater import UpdaterProvider
from rowsync.infrastructure.worker import WorkerProvider
from rowsync.util.di.scope import Scope


def create_container(config: Config | None = None) -> AsyncContainer:
    # Pydantic Settings populates from env vars at runtime
    config = config or Config()  # type: ignore[call-arg]

    return make_async_container(
        PersistenceProvider(),
        StorageProvider(),
        UpdaterProvider(),
        IngestProvider(),
        WorkerProvider(),
        context={Config: config},
        scopes=Scope,  # type: ignore[arg-type]  # Custom scope class
    )
