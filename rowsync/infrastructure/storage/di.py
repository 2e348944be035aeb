"""DI provider for blob storage."""

from pathlib import Path

from dishka import Provider, provide

from rowsync.config import Config
from rowsync.domain.ingest.port import BlobStore
from rowsync.infrastructure.storage.local import LocalBlobStore
from rowsync.infrastructure.storage.s3 import S3BlobStore
from rowsync.util.di.scope import Scope


class StorageProvider(Provider):
    @provide(scope=Scope.APP)
    def get_blob_store(self, config: Config) -> BlobStore:
        if config.storage.backend == "local":
            return LocalBlobStore(Path(config.storage.local_root).expanduser())
        return S3BlobStore(
            region=config.storage.region,
            endpoint_url=config.storage.endpoint_url,
        )
