"""Unit tests for RowSource parsing and header normalization."""

from collections.abc import Iterator

import pytest

from rowsync.domain.ingest.model import ColumnMapping
from rowsync.domain.ingest.service import RowSource, normalize_header
from rowsync.domain.ingest.service.row_source import apply_mapping, normalize_headers
from rowsync.domain.shared.error import SourceUnavailableError


class InMemoryBlobStore:
    """BlobStore serving fixed byte content per key."""

    def __init__(self, objects: dict[str, bytes]) -> None:
        self._objects = objects
        self.fetches: list[str] = []

    def fetch_object(self, bucket: str, key: str) -> Iterator[bytes]:
        self.fetches.append(key)
        if key not in self._objects:
            raise SourceUnavailableError(f"No such key {key}")
        yield from self._objects[key].splitlines(keepends=True)

    def list_folders(self, bucket: str) -> list[str]:
        return []

    def list_objects(self, bucket: str, prefix: str = "") -> list[str]:
        return sorted(k for k in self._objects if k.startswith(prefix))


async def collect(source: RowSource, key: str, mapping: ColumnMapping | None = None) -> list:
    return [row async for row in source.open(key, mapping)]


class TestNormalizeHeader:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("Part Number", "part_number"),
            ("  Manufacturer*  ", "manufacturer"),
            ("Unit Price ($)", "unit_price"),
            ("Weight   (kg)", "weight_kg"),
            ("SKU#", "sku"),
            ("already_normal", "already_normal"),
        ],
    )
    def test_normalizes_to_snake_case(self, raw: str, expected: str):
        assert normalize_header(raw) == expected

    def test_blank_header_falls_back_to_position(self):
        assert normalize_header("  ", 3) == "column_3"

    def test_repeated_headers_are_suffixed(self):
        assert normalize_headers(["Name", "name", "NAME "]) == ["name", "name_2", "name_3"]


class TestApplyMapping:
    def test_mapped_columns_are_copied_to_logical_keys(self):
        # Arrange
        record = {"item_code": "X-1", "group": "bolts", "maker": "Acme"}
        mapping = ColumnMapping(part_number="Item Code", category="Group", manufacturer="Maker")

        # Act
        result = apply_mapping(record, mapping)

        # Assert
        assert result["part_number"] == "X-1"
        assert result["category"] == "bolts"
        assert result["manufacturer"] == "Acme"
        assert result["item_code"] == "X-1"

    def test_aliases_backfill_missing_logical_keys(self):
        record = {"sku": "S-9", "brand": "Bosch", "type": "drills"}

        result = apply_mapping(record, None)

        assert result["part_number"] == "S-9"
        assert result["manufacturer"] == "Bosch"
        assert result["category"] == "drills"

    def test_mapping_wins_over_aliases(self):
        record = {"sku": "alias", "mpn": "mapped"}

        result = apply_mapping(record, ColumnMapping(part_number="MPN"))

        assert result["part_number"] == "mapped"

    def test_empty_mapped_value_falls_back_to_alias(self):
        record = {"code": "", "sku": "S-1"}

        result = apply_mapping(record, ColumnMapping(part_number="code"))

        assert result["part_number"] == "S-1"


class TestRowSourceOpen:
    @pytest.mark.asyncio
    async def test_yields_normalized_records_in_file_order(self):
        # Arrange
        content = b"Part Number,Category\nA-1,bolts\nA-2,nuts\n"
        source = RowSource(blob_store=InMemoryBlobStore({"f.csv": content}), bucket="b")

        # Act
        rows = await collect(source, "f.csv")

        # Assert
        assert rows == [
            {"part_number": "A-1", "category": "bolts"},
            {"part_number": "A-2", "category": "nuts"},
        ]

    @pytest.mark.asyncio
    async def test_strips_utf8_bom_and_skips_blank_lines(self):
        content = "\ufeffSKU,Brand\n\nS-1,Acme\n , \nS-2,Bosch\n".encode()
        source = RowSource(blob_store=InMemoryBlobStore({"f.csv": content}), bucket="b")

        rows = await collect(source, "f.csv")

        assert [r["sku"] for r in rows] == ["S-1", "S-2"]
        assert rows[1]["manufacturer"] == "Bosch"

    @pytest.mark.asyncio
    async def test_skip_lines_discards_preamble_before_header(self):
        content = b"Vendor export\nGenerated 2024-06-01\nPart Number,Category\nA-1,bolts\n"
        source = RowSource(
            blob_store=InMemoryBlobStore({"f.csv": content}), bucket="b", skip_lines=2
        )

        rows = await collect(source, "f.csv")

        assert rows == [{"part_number": "A-1", "category": "bolts"}]

    @pytest.mark.asyncio
    async def test_short_rows_are_padded_with_empty_values(self):
        content = b"a,b,c\n1\n"
        source = RowSource(blob_store=InMemoryBlobStore({"f.csv": content}), bucket="b")

        rows = await collect(source, "f.csv")

        assert rows == [{"a": "1", "b": "", "c": ""}]

    @pytest.mark.asyncio
    async def test_quoted_fields_may_contain_delimiters_and_newlines(self):
        content = b'part_number,description\nA-1,"Bolt, hex\nzinc plated"\n'
        source = RowSource(blob_store=InMemoryBlobStore({"f.csv": content}), bucket="b")

        rows = await collect(source, "f.csv")

        assert rows[0]["description"] == "Bolt, hex\nzinc plated"

    @pytest.mark.asyncio
    async def test_rows_are_yielded_across_chunks(self):
        body = "part_number\n" + "".join(f"P{i}\n" for i in range(7))
        source = RowSource(
            blob_store=InMemoryBlobStore({"f.csv": body.encode()}), bucket="b", chunk_size=3
        )

        rows = await collect(source, "f.csv")

        assert [r["part_number"] for r in rows] == [f"P{i}" for i in range(7)]

    @pytest.mark.asyncio
    async def test_empty_object_is_unavailable(self):
        source = RowSource(blob_store=InMemoryBlobStore({"f.csv": b""}), bucket="b")

        with pytest.raises(SourceUnavailableError):
            await collect(source, "f.csv")

    @pytest.mark.asyncio
    async def test_missing_object_is_unavailable(self):
        source = RowSource(blob_store=InMemoryBlobStore({}), bucket="b")

        with pytest.raises(SourceUnavailableError):
            await collect(source, "missing.csv")

    @pytest.mark.asyncio
    async def test_undecodable_bytes_are_unavailable(self):
        source = RowSource(
            blob_store=InMemoryBlobStore({"f.csv": b"a,b\n\xff\xfe,1\n"}), bucket="b"
        )

        with pytest.raises(SourceUnavailableError):
            await collect(source, "f.csv")

    @pytest.mark.asyncio
    async def test_each_open_is_a_fresh_pass(self):
        store = InMemoryBlobStore({"f.csv": b"a\n1\n2\n"})
        source = RowSource(blob_store=store, bucket="b")

        first = await collect(source, "f.csv")
        second = await collect(source, "f.csv")

        assert first == second
        assert store.fetches == ["f.csv", "f.csv"]


class TestCountRows:
    @pytest.mark.asyncio
    async def test_counts_data_rows_only(self):
        content = b"a,b\n1,2\n\n3,4\n5,6\n"
        source = RowSource(blob_store=InMemoryBlobStore({"f.csv": content}), bucket="b")

        assert await source.count_rows("f.csv") == 3

    @pytest.mark.asyncio
    async def test_header_only_counts_zero(self):
        source = RowSource(blob_store=InMemoryBlobStore({"f.csv": b"a,b\n"}), bucket="b")

        assert await source.count_rows("f.csv") == 0
