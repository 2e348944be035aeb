"""DI provider for the record updater."""

from collections.abc import AsyncIterable
from typing import NewType

import httpx
from dishka import Provider, provide

from rowsync.config import Config
from rowsync.domain.ingest.port import RecordUpdater
from rowsync.infrastructure.updater.http import HttpRecordUpdater
from rowsync.util.di.scope import Scope

UpdaterHttpClient = NewType("UpdaterHttpClient", httpx.AsyncClient)


class UpdaterProvider(Provider):
    @provide(scope=Scope.APP)
    async def get_updater_http_client(self, config: Config) -> AsyncIterable[UpdaterHttpClient]:
        """Shared HTTP client for record updates (connection pooling)."""
        headers = {}
        if config.updater.api_key:
            headers["Authorization"] = f"Bearer {config.updater.api_key}"
        timeout = httpx.Timeout(config.updater.timeout, connect=5.0)
        async with httpx.AsyncClient(timeout=timeout, headers=headers) as client:
            yield UpdaterHttpClient(client)

    @provide(scope=Scope.APP, provides=RecordUpdater)
    def get_record_updater(self, config: Config, client: UpdaterHttpClient) -> HttpRecordUpdater:
        return HttpRecordUpdater(client=client, url=config.updater.url)
