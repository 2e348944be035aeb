"""Unit tests for S3BlobStore with a mocked boto3 client."""

from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from rowsync.domain.shared.error import SourceUnavailableError
from rowsync.infrastructure.storage import S3BlobStore


def make_client(pages: list[dict] | None = None) -> MagicMock:
    client = MagicMock()
    paginator = MagicMock()
    paginator.paginate.return_value = pages or []
    client.get_paginator.return_value = paginator
    return client


class TestFetchObject:
    def test_streams_body_lines_and_closes(self):
        # Arrange
        client = make_client()
        body = MagicMock()
        body.iter_lines.return_value = iter([b"h\n", b"1\n"])
        client.get_object.return_value = {"Body": body, "ContentLength": 4}
        store = S3BlobStore(client)

        # Act
        lines = list(store.fetch_object("bucket", "a.csv"))

        # Assert
        assert lines == [b"h\n", b"1\n"]
        client.get_object.assert_called_once_with(Bucket="bucket", Key="a.csv")
        body.iter_lines.assert_called_once_with(keepends=True)
        body.close.assert_called_once()

    def test_client_error_is_unavailable(self):
        client = make_client()
        client.get_object.side_effect = ClientError(
            {"Error": {"Code": "NoSuchKey", "Message": "missing"}}, "GetObject"
        )
        store = S3BlobStore(client)

        with pytest.raises(SourceUnavailableError):
            list(store.fetch_object("bucket", "a.csv"))


class TestListing:
    def test_list_folders_collects_common_prefixes_across_pages(self):
        client = make_client(
            [
                {"CommonPrefixes": [{"Prefix": "2024-06-01/"}]},
                {"CommonPrefixes": [{"Prefix": "2024-05-01/"}]},
            ]
        )
        store = S3BlobStore(client)

        assert store.list_folders("bucket") == ["2024-05-01/", "2024-06-01/"]
        client.get_paginator.return_value.paginate.assert_called_once_with(
            Bucket="bucket", Delimiter="/"
        )

    def test_list_objects_returns_sorted_keys(self):
        client = make_client(
            [{"Contents": [{"Key": "f/b.csv"}, {"Key": "f/a.csv"}]}, {"KeyCount": 0}]
        )
        store = S3BlobStore(client)

        assert store.list_objects("bucket", "f/") == ["f/a.csv", "f/b.csv"]

    def test_listing_error_is_unavailable(self):
        client = make_client()
        client.get_paginator.return_value.paginate.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "denied"}}, "ListObjectsV2"
        )
        store = S3BlobStore(client)

        with pytest.raises(SourceUnavailableError):
            store.list_folders("bucket")
