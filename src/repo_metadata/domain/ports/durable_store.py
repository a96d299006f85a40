"""Port: durable key/value store backing the cache across process restarts."""

from __future__ import annotations

from typing import Iterable, Protocol


class DurableStore(Protocol):
    """String-to-string store that survives process restarts."""

    def get(self, key: str) -> str | None:
        """Return the stored text, or ``None`` when absent."""
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def delete(self, key: str) -> None:
        """Remove *key*; a missing key is not an error."""
        ...

    def keys(self) -> Iterable[str]:
        ...
