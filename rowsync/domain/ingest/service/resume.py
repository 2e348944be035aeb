"""ResumePlanner - where partitioning should restart for a source."""

import logging

from rowsync.domain.ingest.model import JobState, ResumePlan
from rowsync.domain.ingest.port import WorkQueue
from rowsync.domain.ingest.service.ledger import ProgressLedger
from rowsync.domain.shared.service import Service

logger = logging.getLogger(__name__)


class ResumePlanner(Service):
    """Combines the queue's completed jobs with the ledger checkpoint.

    Completed jobs show what workers actually finished; the ledger survives
    queue eviction. The larger of the two wins.
    """

    queue: WorkQueue
    ledger: ProgressLedger

    async def plan_resume(self, source_key: str, total_rows: int | None = None) -> ResumePlan:
        """Row index to resume from, or "already complete".

        Args:
            source_key: Source to plan for.
            total_rows: Row count of the current pass; defaults to the
                ledger's recorded total.
        """
        completed = await self.queue.jobs_in_state([JobState.COMPLETED], source_key=source_key)
        from_jobs = max((job.end_index for job in completed), default=0)
        from_ledger = await self.ledger.last_processed_row(source_key)
        start_index = max(from_jobs, from_ledger)

        if total_rows is None:
            total_rows = await self.ledger.total_rows(source_key)

        if total_rows is not None and total_rows > 0 and start_index >= total_rows:
            logger.info(f"{source_key} already complete ({start_index}/{total_rows} rows)")
            return ResumePlan(start_index=total_rows, already_complete=True)

        if start_index:
            logger.info(
                f"Resuming {source_key} at row {start_index} "
                f"(completed jobs: {from_jobs}, ledger: {from_ledger})"
            )
        return ResumePlan(start_index=start_index)
