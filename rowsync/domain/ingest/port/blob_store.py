"""BlobStore port - remote object access for source files."""

from collections.abc import Iterator
from typing import Protocol


class BlobStore(Protocol):
    """Read-only access to the bucket holding source files.

    Methods block on network I/O; async callers run them in a worker thread.
    Implementations raise SourceUnavailableError when an object or listing
    cannot be fetched.
    """

    def fetch_object(self, bucket: str, key: str) -> Iterator[bytes]:
        """Stream an object as raw lines, line endings included."""
        ...

    def list_folders(self, bucket: str) -> list[str]:
        """Top-level folder prefixes (each ending with '/'), sorted by name."""
        ...

    def list_objects(self, bucket: str, prefix: str = "") -> list[str]:
        """Object keys under a prefix, sorted by name."""
        ...
