"""Error hierarchy for rowsync.

Error layers:
- RowSyncError: Base class for all rowsync errors
- DomainError: Business rule violations (bad input, illegal state transitions)
- InfrastructureError: System-level failures (progress store, blob storage, updater API)

The CLI maps these to console messages and exit codes; workers map them to
queue retries or deferred ledger writes.
"""


class RowSyncError(Exception):
    """Base class for all rowsync errors."""

    def __init__(self, message: str, code: str | None = None) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        super().__init__(message)


# =============================================================================
# Domain Errors (business logic violations)
# =============================================================================


class DomainError(RowSyncError):
    """Base class for domain/business errors."""


class NotFoundError(DomainError):
    """Resource not found."""


class ValidationError(DomainError):
    """Input validation failed."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message, code="VALIDATION_ERROR")
        self.field = field


class InvalidStateError(DomainError):
    """Operation not allowed in current state."""


class ConflictError(DomainError):
    """Resource already exists or version conflict."""


class DuplicateJobError(ConflictError):
    """A job with the same identifier is already known to the queue."""

    def __init__(self, job_id: str) -> None:
        super().__init__(f"Job {job_id} already exists", code="DUPLICATE_JOB")
        self.job_id = job_id


class SourceChangedError(ConflictError):
    """The source's row count no longer matches the recorded total."""

    def __init__(self, source_key: str, recorded: int, counted: int) -> None:
        super().__init__(
            f"Source {source_key} has {counted} rows but {recorded} are recorded; "
            "reset the source before re-ingesting",
            code="SOURCE_CHANGED",
        )
        self.source_key = source_key
        self.recorded = recorded
        self.counted = counted


# =============================================================================
# Infrastructure Errors (system-level failures)
# =============================================================================


class InfrastructureError(RowSyncError):
    """Base class for infrastructure/system errors."""


class StorageUnavailableError(InfrastructureError):
    """Progress store, queue database or snapshot file is unavailable."""


class SourceUnavailableError(InfrastructureError):
    """Blob storage object cannot be fetched, is empty, or cannot be parsed."""


class ExternalServiceError(InfrastructureError):
    """External record-update service is unavailable or failed."""


class ConfigurationError(InfrastructureError):
    """System misconfiguration detected."""
