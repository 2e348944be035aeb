"""Custom Dishka scopes for rowsync."""

from dishka import BaseScope, new_scope


class Scope(BaseScope):  # type: ignore[misc]  # BaseScope is designed to be subclassed
    """rowsync dependency injection scopes.

    Hierarchy: APP -> UOW

    - APP: Process lifetime (engine, queue, progress store, worker pool)
    - UOW: Unit of Work (one ingest run or one leased batch)
    """

    APP = new_scope("APP")
    UOW = new_scope("UOW")
