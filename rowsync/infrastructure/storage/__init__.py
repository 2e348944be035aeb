from rowsync.infrastructure.storage.di import StorageProvider
from rowsync.infrastructure.storage.local import LocalBlobStore
from rowsync.infrastructure.storage.s3 import S3BlobStore

__all__ = ["LocalBlobStore", "S3BlobStore", "StorageProvider"]
