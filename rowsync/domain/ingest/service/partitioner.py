"""Batch partitioning by absolute row position."""

from collections.abc import AsyncIterable, AsyncIterator

from rowsync.domain.ingest.model import Batch, RowRecord


async def partition(
    source_key: str,
    rows: AsyncIterable[RowRecord],
    batch_size: int,
    resume_from: int = 0,
) -> AsyncIterator[Batch]:
    """Group rows into fixed-size batches addressed by absolute start index.

    Rows below ``resume_from`` are consumed and dropped so the counter stays
    aligned with the file. Boundaries depend only on position, so a rerun
    reproduces the same batches for every row not yet resumed past.
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be positive, got {batch_size}")
    if resume_from < 0:
        raise ValueError(f"resume_from must not be negative, got {resume_from}")

    index = 0
    start_index = resume_from
    pending: list[RowRecord] = []

    async for row in rows:
        if index < resume_from:
            index += 1
            continue
        if not pending:
            start_index = index
        pending.append(row)
        index += 1
        if len(pending) == batch_size:
            yield Batch(source_key=source_key, start_index=start_index, rows=tuple(pending))
            pending = []

    if pending:
        yield Batch(source_key=source_key, start_index=start_index, rows=tuple(pending))
