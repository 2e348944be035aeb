"""IngestService - orchestrates one ingest pass over a source."""

import asyncio
import logging
from contextlib import aclosing
from dataclasses import dataclass, field

import logfire

from rowsync.domain.ingest.model import (
    Accepted,
    Duplicate,
    MappingEntry,
    MappingStatus,
    Rejected,
)
from rowsync.domain.ingest.port import BlobStore, MappingStore
from rowsync.domain.ingest.service.dispatcher import Dispatcher
from rowsync.domain.ingest.service.ledger import ProgressLedger
from rowsync.domain.ingest.service.partitioner import partition
from rowsync.domain.ingest.service.resume import ResumePlanner
from rowsync.domain.ingest.service.row_source import RowSource
from rowsync.domain.shared.error import (
    RowSyncError,
    SourceChangedError,
    SourceUnavailableError,
)
from rowsync.domain.shared.service import Service

logger = logging.getLogger(__name__)

SOURCE_SUFFIX = ".csv"


@dataclass
class IngestReport:
    """Outcome of one ingest pass."""

    source_key: str
    total_rows: int = 0
    resume_from: int = 0
    accepted: int = 0
    duplicates: int = 0
    rejected: int = 0
    already_complete: bool = False
    error: str | None = None
    rejections: list[str] = field(default_factory=list)

    @property
    def status(self) -> str:
        if self.error is not None:
            return "error"
        if self.already_complete:
            return "complete"
        if self.rejected:
            return "partial"
        return "dispatched"


class IngestService(Service):
    """Row count, resume plan, partition and dispatch for each source.

    A source that can't be fetched or is empty is abandoned before any
    batch or ledger entry exists; the next trigger retries it from scratch.
    """

    row_source: RowSource
    ledger: ProgressLedger
    planner: ResumePlanner
    dispatcher: Dispatcher
    mappings: MappingStore
    blob_store: BlobStore
    bucket: str
    batch_size: int

    async def ingest(self, source_key: str) -> IngestReport:
        """Dispatch every not-yet-processed batch of one source.

        Raises:
            SourceUnavailableError: The object is missing, empty or unparsable.
            SourceChangedError: The recorded total differs from the current row count.
        """
        with logfire.span("ingest {source_key}", source_key=source_key):
            report = IngestReport(source_key=source_key)
            entry = await self.mappings.get(source_key)
            mapping = entry.mapping if entry is not None else None

            total_rows = await self.row_source.count_rows(source_key)
            if total_rows == 0:
                raise SourceUnavailableError(f"Source {source_key} has no data rows")
            report.total_rows = total_rows

            recorded = await self.ledger.total_rows(source_key)
            if recorded is not None and recorded != total_rows:
                raise SourceChangedError(source_key, recorded=recorded, counted=total_rows)

            if await self.ledger.is_complete(source_key):
                logger.info(f"{source_key} already fully processed, nothing to dispatch")
                report.already_complete = True
                report.resume_from = total_rows
                await self._mark_completed(entry)
                return report

            plan = await self.planner.plan_resume(source_key, total_rows)
            report.resume_from = plan.start_index
            if plan.already_complete:
                report.already_complete = True
                return report

            async with aclosing(self.row_source.open(source_key, mapping)) as rows:
                batches = partition(source_key, rows, self.batch_size, plan.start_index)
                async for batch in batches:
                    result = await self.dispatcher.submit(batch, total_rows)
                    if isinstance(result, Accepted):
                        report.accepted += 1
                    elif isinstance(result, Duplicate):
                        report.duplicates += 1
                    elif isinstance(result, Rejected):
                        report.rejected += 1
                        report.rejections.append(f"{result.job_id}: {result.reason}")

            logger.info(
                f"Ingested {source_key}: {total_rows} rows from {plan.start_index}, "
                f"{report.accepted} accepted, {report.duplicates} duplicate, "
                f"{report.rejected} rejected"
            )
            return report

    async def ingest_many(self, source_keys: list[str]) -> list[IngestReport]:
        """Ingest sources one after another; one source failing doesn't stop the rest."""
        reports = []
        for source_key in source_keys:
            try:
                reports.append(await self.ingest(source_key))
            except (SourceUnavailableError, SourceChangedError) as e:
                logger.error(f"Abandoned ingest of {source_key}: {e.message}")
                reports.append(IngestReport(source_key=source_key, error=e.message))
        return reports

    async def latest_folder(self) -> str | None:
        """Newest folder in the bucket, by name ordering."""
        folders = await asyncio.to_thread(self.blob_store.list_folders, self.bucket)
        return folders[-1] if folders else None

    async def ingest_latest_folder(self) -> list[IngestReport]:
        """Ingest every ``.csv`` object in the newest folder of the bucket."""
        folder = await self.latest_folder()
        if folder is None:
            logger.warning(f"No folders found in bucket {self.bucket}")
            return []

        keys = await asyncio.to_thread(self.blob_store.list_objects, self.bucket, folder)
        sources = [key for key in keys if key.lower().endswith(SOURCE_SUFFIX)]
        logger.info(f"Latest folder {folder}: {len(sources)} source files")
        return await self.ingest_many(sources)

    async def ingest_ready(self) -> list[IngestReport]:
        """Ingest every source whose column mapping is marked READY."""
        entries = await self.mappings.list_entries(MappingStatus.READY)
        sources = [e.file_key for e in entries if e.file_key.lower().endswith(SOURCE_SUFFIX)]
        if not sources:
            logger.info("No sources marked ready")
        return await self.ingest_many(sources)

    async def _mark_completed(self, entry: MappingEntry | None) -> None:
        if entry is None or entry.status == MappingStatus.COMPLETED:
            return
        try:
            await self.mappings.mark_completed(entry.file_key)
        except RowSyncError as e:
            logger.warning(f"Could not mark {entry.file_key} completed: {e.message}")
