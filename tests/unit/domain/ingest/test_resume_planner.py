"""Unit tests for ResumePlanner."""

from unittest.mock import AsyncMock

import pytest

from rowsync.domain.ingest.model import JobHandle, JobId, JobState, ResumePlan
from rowsync.domain.ingest.service import ResumePlanner


def completed(start_index: int, row_count: int = 20) -> JobHandle:
    return JobHandle(
        id=JobId(f"batch:parts.csv:{start_index}"),
        source_key="parts.csv",
        start_index=start_index,
        row_count=row_count,
        state=JobState.COMPLETED,
    )


def make_planner(jobs: list[JobHandle], checkpoint: int, total: int | None = None):
    queue = AsyncMock()
    queue.jobs_in_state.return_value = jobs
    ledger = AsyncMock()
    ledger.last_processed_row.return_value = checkpoint
    ledger.total_rows.return_value = total
    return ResumePlanner(queue=queue, ledger=ledger), queue


class TestPlanResume:
    @pytest.mark.asyncio
    async def test_fresh_source_starts_at_zero(self):
        planner, _ = make_planner([], checkpoint=0)

        assert await planner.plan_resume("parts.csv", 45) == ResumePlan(start_index=0)

    @pytest.mark.asyncio
    async def test_uses_highest_completed_job_end(self):
        # Arrange
        planner, queue = make_planner([completed(0), completed(40)], checkpoint=20)

        # Act
        plan = await planner.plan_resume("parts.csv", 100)

        # Assert
        assert plan == ResumePlan(start_index=60)
        queue.jobs_in_state.assert_awaited_once_with([JobState.COMPLETED], source_key="parts.csv")

    @pytest.mark.asyncio
    async def test_ledger_wins_after_queue_eviction(self):
        planner, _ = make_planner([], checkpoint=60)

        assert (await planner.plan_resume("parts.csv", 100)).start_index == 60

    @pytest.mark.asyncio
    async def test_reports_already_complete(self):
        planner, _ = make_planner([completed(40, 5)], checkpoint=45)

        plan = await planner.plan_resume("parts.csv", 45)

        assert plan == ResumePlan(start_index=45, already_complete=True)

    @pytest.mark.asyncio
    async def test_falls_back_to_recorded_total(self):
        planner, _ = make_planner([], checkpoint=45, total=45)

        plan = await planner.plan_resume("parts.csv")

        assert plan.already_complete is True

    @pytest.mark.asyncio
    async def test_unknown_total_never_reports_complete(self):
        planner, _ = make_planner([], checkpoint=0, total=None)

        plan = await planner.plan_resume("parts.csv")

        assert plan == ResumePlan(start_index=0)
