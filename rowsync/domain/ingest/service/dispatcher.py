"""Dispatcher - idempotent submission of batches to the work queue."""

import logging
from dataclasses import field

from rowsync.domain.ingest.model import (
    ALL_STATES,
    Accepted,
    Batch,
    BatchPayload,
    Duplicate,
    Rejected,
    SubmitResult,
    job_id,
)
from rowsync.domain.ingest.port import WorkQueue
from rowsync.domain.ingest.service.ledger import ProgressLedger
from rowsync.domain.shared.error import DuplicateJobError, InfrastructureError
from rowsync.domain.shared.service import Service

logger = logging.getLogger(__name__)


class Dispatcher(Service):
    """Submits batches under deterministic job identifiers.

    Known identifiers are loaded once per source from every queue state.
    A concurrent dispatcher can still race past that check; the queue's
    unique identifier turns the second submission into a Duplicate.
    """

    queue: WorkQueue
    ledger: ProgressLedger
    salt: str | None = None
    _known: dict[str, set[str]] = field(default_factory=dict, init=False, repr=False)
    _initialized: set[str] = field(default_factory=set, init=False, repr=False)

    async def submit(self, batch: Batch, total_rows: int) -> SubmitResult:
        """Submit one batch.

        Returns:
            Accepted when a job was created, Duplicate when the identifier is
            already known, Rejected when the batch is invalid or the queue
            could not take it.
        """
        identifier = job_id(batch.source_key, batch.start_index, self.salt)

        if not batch.rows:
            return Rejected(identifier, "batch has no rows")
        if batch.end_index > total_rows:
            return Rejected(identifier, f"batch ends at {batch.end_index}, past {total_rows} rows")

        known = await self._known_ids(batch.source_key)
        if identifier in known:
            logger.debug(f"Skipping duplicate job {identifier}")
            return Duplicate(identifier)

        try:
            if batch.source_key not in self._initialized:
                await self.ledger.initialize(batch.source_key, total_rows)
                self._initialized.add(batch.source_key)
            await self.queue.submit(identifier, BatchPayload.from_batch(batch, total_rows))
        except DuplicateJobError:
            known.add(identifier)
            logger.info(f"Job {identifier} was submitted concurrently, treating as duplicate")
            return Duplicate(identifier)
        except InfrastructureError as e:
            logger.error(f"Failed to submit {identifier}: {e.message}")
            return Rejected(identifier, e.message)

        known.add(identifier)
        logger.debug(f"Submitted {identifier} ({batch.size} rows)")
        return Accepted(identifier)

    async def _known_ids(self, source_key: str) -> set[str]:
        if source_key not in self._known:
            jobs = await self.queue.jobs_in_state(ALL_STATES, source_key=source_key)
            self._known[source_key] = {job.id for job in jobs}
        return self._known[source_key]
