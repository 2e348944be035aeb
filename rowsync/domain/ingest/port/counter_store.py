"""CounterStore port - shared integer store with atomic primitives."""

from collections.abc import Mapping, Sequence
from typing import Protocol


class CounterStore(Protocol):
    """Process-wide key/value store of integers.

    Every mutation is atomic; callers never read-then-write.
    Patterns use ``*`` as a wildcard.
    """

    async def get(self, key: str) -> int | None: ...

    async def get_many(self, keys: Sequence[str]) -> dict[str, int | None]: ...

    async def set(self, key: str, value: int) -> None: ...

    async def multi_set(self, values: Mapping[str, int]) -> None: ...

    async def set_if_absent(self, values: Mapping[str, int]) -> None:
        """Insert keys that don't exist yet; existing keys keep their value."""
        ...

    async def incr_by(self, key: str, amount: int) -> int:
        """Add to a key (missing keys start at 0) and return the new value."""
        ...

    async def set_if_greater(self, key: str, candidate: int) -> bool:
        """Store ``candidate`` only if it is strictly greater than the current value."""
        ...

    async def apply_once(self, marker_key: str, increments: Mapping[str, int]) -> bool:
        """Apply increments together with a one-time marker, atomically.

        Returns False without changing anything if the marker already exists.
        """
        ...

    async def keys_matching(self, pattern: str) -> list[str]: ...

    async def delete(
        self, keys: Sequence[str] = (), *, patterns: Sequence[str] = ()
    ) -> dict[str, int]:
        """Delete keys atomically and return the removed key/value pairs."""
        ...
