"""Unit tests for LocalBlobStore."""

from pathlib import Path

import pytest

from rowsync.domain.shared.error import SourceUnavailableError
from rowsync.infrastructure.storage import LocalBlobStore


@pytest.fixture
def root(tmp_path: Path) -> Path:
    bucket = tmp_path / "bucket"
    (bucket / "2024-05-01").mkdir(parents=True)
    (bucket / "2024-06-01").mkdir()
    (bucket / "2024-06-01" / "a.csv").write_bytes(b"h\n1\n2\n")
    (bucket / "2024-06-01" / "b.csv").write_bytes(b"h\n")
    (bucket / "top.csv").write_bytes(b"h\n")
    return tmp_path


class TestLocalBlobStore:
    def test_fetch_object_yields_raw_lines(self, root: Path):
        store = LocalBlobStore(root)

        assert list(store.fetch_object("bucket", "2024-06-01/a.csv")) == [b"h\n", b"1\n", b"2\n"]

    def test_missing_object_is_unavailable(self, root: Path):
        store = LocalBlobStore(root)

        with pytest.raises(SourceUnavailableError):
            list(store.fetch_object("bucket", "nope.csv"))

    def test_key_cannot_escape_bucket(self, root: Path):
        (root / "secret.csv").write_bytes(b"x\n")
        store = LocalBlobStore(root)

        with pytest.raises(SourceUnavailableError):
            list(store.fetch_object("bucket", "../secret.csv"))

    def test_list_folders_is_sorted_with_trailing_slash(self, root: Path):
        store = LocalBlobStore(root)

        assert store.list_folders("bucket") == ["2024-05-01/", "2024-06-01/"]

    def test_list_objects_filters_by_prefix(self, root: Path):
        store = LocalBlobStore(root)

        assert store.list_objects("bucket", "2024-06-01/") == [
            "2024-06-01/a.csv",
            "2024-06-01/b.csv",
        ]

    def test_missing_bucket_is_unavailable(self, root: Path):
        store = LocalBlobStore(root)

        with pytest.raises(SourceUnavailableError):
            store.list_folders("other")
