"""Alembic migrations produce the schema the adapters expect."""

from pathlib import Path

import pytest
from sqlalchemy import create_engine, inspect

from rowsync.config import Config
from rowsync.domain.ingest.model import BatchPayload, JobId, JobState
from rowsync.infrastructure.persistence.database import create_db_engine
from rowsync.infrastructure.persistence.migrate import run_migrations
from rowsync.infrastructure.persistence.repository import SQLAlchemyWorkQueue


@pytest.fixture
def migrated_url(tmp_path: Path) -> str:
    url = f"sqlite+aiosqlite:///{tmp_path / 'migrated.db'}"
    run_migrations(url)
    return url


class TestMigrations:
    def test_creates_queue_and_progress_tables(self, tmp_path: Path, migrated_url: str):
        engine = create_engine(f"sqlite:///{tmp_path / 'migrated.db'}")
        try:
            tables = set(inspect(engine).get_table_names())
        finally:
            engine.dispose()

        assert {"batch_jobs", "progress_counters", "alembic_version"} <= tables

    def test_running_twice_is_a_no_op(self, migrated_url: str):
        run_migrations(migrated_url)

    @pytest.mark.asyncio
    async def test_queue_works_on_migrated_schema(self, migrated_url: str):
        engine = create_db_engine(Config(database={"url": migrated_url}))
        try:
            queue = SQLAlchemyWorkQueue(engine)
            await queue.submit(
                JobId("batch:a.csv:0"),
                BatchPayload(source_key="a.csv", start_index=0, rows=[{"x": "1"}], total_rows=1),
            )

            assert (await queue.count_by_state())[JobState.WAITING] == 1
        finally:
            await engine.dispose()
