"""Local filesystem adapter implementing BlobStore.

A bucket maps to a directory under the configured root; keys are paths
relative to it. Used for development and tests.
"""

from collections.abc import Iterator
from pathlib import Path

from rowsync.domain.ingest.port import BlobStore
from rowsync.domain.shared.error import SourceUnavailableError


class LocalBlobStore(BlobStore):
    def __init__(self, root: Path) -> None:
        self._root = root

    def fetch_object(self, bucket: str, key: str) -> Iterator[bytes]:
        path = self._resolve(bucket, key)
        try:
            f = path.open("rb")
        except OSError as e:
            raise SourceUnavailableError(f"Cannot open {path}: {e}") from e
        with f:
            try:
                yield from f
            except OSError as e:
                raise SourceUnavailableError(f"Failed reading {path}: {e}") from e

    def list_folders(self, bucket: str) -> list[str]:
        base = self._bucket_dir(bucket)
        if not base.is_dir():
            raise SourceUnavailableError(f"Bucket directory {base} does not exist")
        return sorted(f"{child.name}/" for child in base.iterdir() if child.is_dir())

    def list_objects(self, bucket: str, prefix: str = "") -> list[str]:
        base = self._bucket_dir(bucket)
        if not base.is_dir():
            raise SourceUnavailableError(f"Bucket directory {base} does not exist")
        keys = (path.relative_to(base).as_posix() for path in base.rglob("*") if path.is_file())
        return sorted(key for key in keys if key.startswith(prefix))

    def _bucket_dir(self, bucket: str) -> Path:
        return self._root / bucket if bucket else self._root

    def _resolve(self, bucket: str, key: str) -> Path:
        """Resolve a key to a path, ensuring it stays within the bucket directory."""
        base = self._bucket_dir(bucket).resolve()
        path = (base / key).resolve()
        if not path.is_relative_to(base):
            raise SourceUnavailableError(f"Key {key} escapes bucket {bucket}")
        return path
