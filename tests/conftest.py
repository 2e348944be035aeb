"""Global test fixtures."""

from pathlib import Path

import pytest
import pytest_asyncio

from rowsync.config import Config
from rowsync.domain.ingest.model import PendingLedgerWrites
from rowsync.domain.ingest.service import LedgerKeys, ProgressLedger
from rowsync.infrastructure.persistence.adapter import JsonMappingStore, JsonSnapshotStore
from rowsync.infrastructure.persistence.database import create_db_engine, create_tables
from rowsync.infrastructure.persistence.repository import (
    SQLAlchemyCounterStore,
    SQLAlchemyWorkQueue,
)
from rowsync.infrastructure.storage import LocalBlobStore

BUCKET = "parts"


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep every test away from the real XDG directories and config files."""
    monkeypatch.setenv("ROWSYNC_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.delenv("ROWSYNC_CONFIG_FILE", raising=False)
    monkeypatch.delenv("ROWSYNC_LOG_FILE", raising=False)


@pytest.fixture
def config(tmp_path: Path) -> Config:
    return Config(
        database={"url": f"sqlite+aiosqlite:///{tmp_path / 'rowsync.db'}", "auto_migrate": False},
        storage={"backend": "local", "bucket": BUCKET, "local_root": str(tmp_path / "blobs")},
        ingest={
            "batch_size": 20,
            "mappings_file": str(tmp_path / "mappings.json"),
            "checkpoint_file": str(tmp_path / "checkpoint.json"),
        },
        worker={"concurrency": 1, "poll_interval": 0.01, "progress_interval": 0},
        queue={"backoff_seconds": 0.0},
    )


@pytest_asyncio.fixture
async def engine(config: Config):
    """File-backed SQLite engine; a file database lets concurrent tasks share state."""
    engine = create_db_engine(config)
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def queue(engine) -> SQLAlchemyWorkQueue:
    return SQLAlchemyWorkQueue(engine)


@pytest.fixture
def counter_store(engine) -> SQLAlchemyCounterStore:
    return SQLAlchemyCounterStore(engine)


@pytest.fixture
def snapshots(config: Config) -> JsonSnapshotStore:
    return JsonSnapshotStore(Path(config.ingest.checkpoint_file))


@pytest.fixture
def mappings(config: Config) -> JsonMappingStore:
    return JsonMappingStore(Path(config.ingest.mappings_file))


@pytest.fixture
def pending() -> PendingLedgerWrites:
    return PendingLedgerWrites()


@pytest.fixture
def ledger(counter_store, snapshots, queue, pending) -> ProgressLedger:
    return ProgressLedger(
        store=counter_store,
        snapshots=snapshots,
        queue=queue,
        keys=LedgerKeys(),
        pending=pending,
    )


@pytest.fixture
def blob_root(config: Config) -> Path:
    root = Path(config.storage.local_root)
    (root / BUCKET).mkdir(parents=True)
    return root


@pytest.fixture
def blob_store(blob_root: Path) -> LocalBlobStore:
    return LocalBlobStore(blob_root)


@pytest.fixture
def write_source(blob_root: Path):
    """Write a CSV object into the test bucket and return its key."""

    def write(key: str, content: str) -> str:
        path = blob_root / BUCKET / key
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return key

    return write


def parts_csv(rows: int, header: str = "Part Number,Category,Manufacturer") -> str:
    lines = [header]
    lines.extend(f"P-{i:04d},widgets,Acme" for i in range(rows))
    return "\n".join(lines) + "\n"


@pytest.fixture
def make_csv():
    """Build a CSV body with ``rows`` data rows under a standard header."""
    return parts_csv
