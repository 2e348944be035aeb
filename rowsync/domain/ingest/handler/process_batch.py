"""ProcessBatch - applies a leased batch and records its outcome."""

import logging

import logfire

from rowsync.domain.ingest.model import Failed, JobHandle, OutcomeTally
from rowsync.domain.ingest.port import MappingStore, RecordUpdater
from rowsync.domain.ingest.service.ledger import ProgressLedger
from rowsync.domain.shared.error import RowSyncError, StorageUnavailableError, ValidationError
from rowsync.domain.shared.service import Service

logger = logging.getLogger(__name__)


class ProcessBatch(Service):
    """Runs the per-record updater over one batch.

    A row whose update raises is counted as failed and the batch carries
    on. Counts are committed once per batch behind a completion marker, so
    a redelivered batch never double-counts; the checkpoint only moves
    forward.
    """

    updater: RecordUpdater
    ledger: ProgressLedger
    mappings: MappingStore

    async def handle(self, job: JobHandle) -> OutcomeTally:
        payload = job.payload
        if payload is None:
            raise ValidationError(f"Job {job.id} was leased without a payload")

        # Earlier batches' results go first so the ledger stays in order
        await self.flush_deferred()

        with logfire.span(
            "process batch {source_key}@{start_index}",
            source_key=payload.source_key,
            start_index=payload.start_index,
            rows=len(payload.rows),
        ):
            tally = OutcomeTally()
            for offset, record in enumerate(payload.rows):
                try:
                    outcome = await self.updater.apply(record)
                except Exception as e:
                    row = payload.start_index + offset
                    logger.warning(f"Row {row} of {payload.source_key} failed: {e}")
                    outcome = Failed(str(e))
                tally.record(outcome)

            committed = await self.ledger.commit_batch(
                payload.source_key,
                payload.start_index,
                tally,
                total_rows=payload.total_rows,
                checkpoint_candidate=payload.checkpoint_candidate,
            )

        logger.info(
            f"Batch {payload.source_key}@{payload.start_index}: {tally.updated} updated, "
            f"{tally.skipped} skipped, {tally.failed} failed"
        )
        if committed and await self.ledger.is_complete(payload.source_key):
            await self._finish_source(payload.source_key)
        return tally

    async def flush_deferred(self) -> int:
        """Write deferred batch results and finish any source they complete.

        Returns how many deferred writes went through.
        """
        written = await self.ledger.flush_pending()
        for source_key in sorted({write.source_key for write in written}):
            try:
                complete = await self.ledger.is_complete(source_key)
            except StorageUnavailableError as e:
                logger.warning(f"Could not check completion of {source_key}: {e.message}")
                continue
            if complete:
                await self._finish_source(source_key)
        return len(written)

    async def _finish_source(self, source_key: str) -> None:
        logger.info(f"All rows of {source_key} processed")
        try:
            await self.mappings.mark_completed(source_key)
        except RowSyncError as e:
            logger.warning(f"Could not mark {source_key} completed: {e.message}")
