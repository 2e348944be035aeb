"""RowSource - lazy, single-pass records from a delimited file in blob storage."""

import asyncio
import codecs
import csv
import itertools
import logging
import re
from collections.abc import AsyncIterator, Iterator

from rowsync.domain.ingest.model import ColumnMapping, RowRecord
from rowsync.domain.ingest.model.record import CATEGORY, MANUFACTURER, PART_NUMBER
from rowsync.domain.ingest.port import BlobStore
from rowsync.domain.shared.error import SourceUnavailableError
from rowsync.domain.shared.service import Service

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")
_INVALID = re.compile(r"[^a-z0-9_]")
_UNDERSCORES = re.compile(r"_+")

# Vendor spellings backfilled into logical keys when no mapping covers them
COMMON_ALIASES: dict[str, tuple[str, ...]] = {
    PART_NUMBER: ("sku", "mpn", "part_no", "part", "item_number"),
    MANUFACTURER: ("brand", "mfr", "vendor", "make"),
    CATEGORY: ("product_category", "type", "category_name"),
}


def normalize_header(raw: str, position: int = 0) -> str:
    """Canonical column key: trimmed, lowercase, underscores for whitespace.

    Asterisks (required-field markers) are dropped and any other character
    outside ``[a-z0-9_]`` becomes an underscore. Blank headers fall back to
    ``column_{position}``.
    """
    key = raw.replace("*", "").strip().lower()
    key = _WHITESPACE.sub("_", key)
    key = _INVALID.sub("_", key)
    key = _UNDERSCORES.sub("_", key).strip("_")
    return key or f"column_{position}"


def normalize_headers(raw_headers: list[str]) -> list[str]:
    """Normalize a header row, suffixing repeated keys (``name``, ``name_2``)."""
    seen: dict[str, int] = {}
    keys = []
    for position, raw in enumerate(raw_headers):
        key = normalize_header(raw, position)
        count = seen.get(key, 0) + 1
        seen[key] = count
        keys.append(key if count == 1 else f"{key}_{count}")
    return keys


def apply_mapping(record: RowRecord, mapping: ColumnMapping | None) -> RowRecord:
    """Copy mapped physical columns into logical keys, then backfill from aliases."""
    if mapping is not None:
        for logical, physical in mapping.logical_columns().items():
            value = record.get(normalize_header(physical))
            if value:
                record[logical] = value

    for logical, aliases in COMMON_ALIASES.items():
        if record.get(logical):
            continue
        for alias in aliases:
            if record.get(alias):
                record[logical] = record[alias]
                break
    return record


class RowSource(Service):
    """Produces normalized records from one source file.

    Every ``open`` is a fresh pass from the first byte of the object; there
    is no seeking. Parsing runs in a worker thread in chunks so the event
    loop is never blocked on the blob store.
    """

    blob_store: BlobStore
    bucket: str
    skip_lines: int = 0
    encoding: str = "utf-8-sig"
    delimiter: str = ","
    chunk_size: int = 500

    async def open(
        self, source_key: str, mapping: ColumnMapping | None = None
    ) -> AsyncIterator[RowRecord]:
        """Yield each data row of ``source_key`` as a RowRecord.

        Raises:
            SourceUnavailableError: The object can't be fetched, decoded or parsed.
        """
        rows = self._parse(source_key, mapping)
        try:
            while True:
                chunk = await asyncio.to_thread(_take, rows, self.chunk_size)
                if not chunk:
                    break
                for row in chunk:
                    yield row
        finally:
            rows.close()

    async def count_rows(self, source_key: str) -> int:
        """Count data rows with a separate full pass over the object."""
        count = await asyncio.to_thread(self._count, source_key)
        logger.info(f"Counted {count} rows in {source_key}")
        return count

    def _count(self, source_key: str) -> int:
        return sum(1 for _ in self._parse(source_key, None))

    def _parse(self, source_key: str, mapping: ColumnMapping | None) -> Iterator[RowRecord]:
        lines = self.blob_store.fetch_object(self.bucket, source_key)
        text = codecs.iterdecode(lines, self.encoding)
        try:
            for _ in range(self.skip_lines):
                next(text, None)

            reader = csv.reader(text, delimiter=self.delimiter)
            header = next(reader, None)
            if not header or not any(cell.strip() for cell in header):
                raise SourceUnavailableError(f"Source {source_key} is empty or has no header")
            keys = normalize_headers(header)

            for cells in reader:
                if not any(cell.strip() for cell in cells):
                    continue
                values = [cell.strip() for cell in cells]
                values.extend([""] * (len(keys) - len(values)))
                yield apply_mapping(dict(zip(keys, values)), mapping)
        except (csv.Error, UnicodeDecodeError) as e:
            raise SourceUnavailableError(f"Failed to parse {source_key}: {e}") from e
        finally:
            close = getattr(lines, "close", None)
            if close is not None:
                close()


def _take(rows: Iterator[RowRecord], n: int) -> list[RowRecord]:
    return list(itertools.islice(rows, n))
