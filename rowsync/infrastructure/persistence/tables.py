"""SQLAlchemy table definitions - dialect-agnostic (works with SQLite and PostgreSQL)."""

from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
)
from sqlalchemy.types import JSON

# Metadata object for all tables
metadata = MetaData()

# ============================================================================
# BATCH JOBS TABLE (work queue)
# ============================================================================
# status: waiting | active | completed | failed
# "delayed" is a waiting job whose available_at lies in the future.
batch_jobs_table = Table(
    "batch_jobs",
    metadata,
    Column("id", String, primary_key=True),  # Deterministic job identifier
    Column("source_key", String, nullable=False),
    Column("start_index", Integer, nullable=False),
    Column("row_count", Integer, nullable=False),
    Column("payload", JSON, nullable=False),  # {sourceKey, startIndex, rows, totalRows}
    Column("status", String(32), nullable=False),
    Column("attempts", Integer, nullable=False, default=0),
    Column("available_at", DateTime(timezone=True), nullable=False),
    Column("lease_token", String, nullable=True),
    Column("leased_by", String, nullable=True),
    Column("leased_at", DateTime(timezone=True), nullable=True),
    Column("last_error", Text, nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
    Column("finished_at", DateTime(timezone=True), nullable=True),
)

Index("idx_batch_jobs_runnable", batch_jobs_table.c.status, batch_jobs_table.c.available_at)
Index("idx_batch_jobs_source", batch_jobs_table.c.source_key, batch_jobs_table.c.status)

# ============================================================================
# PROGRESS COUNTERS TABLE (shared progress store)
# ============================================================================
progress_counters_table = Table(
    "progress_counters",
    metadata,
    Column("key", String, primary_key=True),
    Column("value", BigInteger, nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)
