"""Tagged outcomes for record updates and batch submissions."""

from dataclasses import dataclass


# -----------------------------------------------------------------------------
# Per-record update outcomes
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class Updated:
    pass


@dataclass(frozen=True)
class Skipped:
    reason: str | None = None


@dataclass(frozen=True)
class Failed:
    reason: str


UpdateOutcome = Updated | Skipped | Failed


@dataclass
class OutcomeTally:
    """Per-batch outcome counts, accumulated locally before touching the ledger."""

    updated: int = 0
    skipped: int = 0
    failed: int = 0

    def record(self, outcome: UpdateOutcome) -> None:
        if isinstance(outcome, Updated):
            self.updated += 1
        elif isinstance(outcome, Skipped):
            self.skipped += 1
        else:
            self.failed += 1

    @property
    def total(self) -> int:
        return self.updated + self.skipped + self.failed


# -----------------------------------------------------------------------------
# Batch submission outcomes
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class Accepted:
    job_id: str


@dataclass(frozen=True)
class Duplicate:
    job_id: str


@dataclass(frozen=True)
class Rejected:
    job_id: str
    reason: str


SubmitResult = Accepted | Duplicate | Rejected
