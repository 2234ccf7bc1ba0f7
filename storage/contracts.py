"""Storage repo contracts — provider-neutral protocols."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from drafts.models import DraftChange


class DraftRepo(Protocol):
    """Persistence boundary for staged draft changes of one (repository, branch)."""

    def save(self, repository_id: str, branch: str, change: DraftChange) -> None:
        """Insert ``change`` after every stored change, replacing any change with the same primary path."""
        ...

    def delete(self, repository_id: str, branch: str, change_id: str) -> bool: ...

    def clear(self, repository_id: str, branch: str) -> int: ...

    def load(self, repository_id: str, branch: str) -> list[DraftChange]:
        """Return stored changes in insertion order."""
        ...

    def close(self) -> None: ...
