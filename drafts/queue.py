"""
DraftQueue — ordered, primary-path-deduplicated staged changes.

One queue per (repository, branch). The queue has no identity while empty:
``created_at`` is reset when the last change leaves.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any

from drafts.errors import DraftNotFoundError
from drafts.models import DraftChange

if TYPE_CHECKING:
    from storage.contracts import DraftRepo

logger = logging.getLogger(__name__)


class DraftQueue:
    """Staged changes for one repository branch.

    Args:
        repository_id: Remote repository id the changes belong to.
        branch: Branch the changes will be published to.
        repo: Optional persistence. Every mutation is written through.

    """

    def __init__(self, repository_id: str, branch: str, repo: DraftRepo | None = None) -> None:
        self.repository_id = repository_id
        self.branch = branch
        self._repo = repo
        # dicts keep insertion order; re-inserting after pop moves a key to the end
        self._changes: dict[str, DraftChange] = {}
        self.created_at: float | None = None
        self.updated_at: float | None = None

    @classmethod
    def restore(cls, repository_id: str, branch: str, repo: DraftRepo) -> DraftQueue:
        """Rebuild a queue from persisted changes."""
        queue = cls(repository_id, branch, repo)
        for change in repo.load(repository_id, branch):
            queue._insert(change)
        if queue._changes:
            queue.created_at = min(c.created_at for c in queue._changes.values())
            queue.updated_at = max(c.created_at for c in queue._changes.values())
            logger.info("Restored %d draft change(s) for %s@%s", len(queue), repository_id, branch)
        return queue

    def __len__(self) -> int:
        return len(self._changes)

    def __bool__(self) -> bool:
        return bool(self._changes)

    def enqueue(self, change: DraftChange) -> DraftChange | None:
        """Stage ``change``; return the change it replaced, if any."""
        replaced = self._insert(change)
        now = time.time()
        if self.created_at is None:
            self.created_at = now
        self.updated_at = now
        if self._repo is not None:
            self._repo.save(self.repository_id, self.branch, change)
        if replaced is not None:
            logger.debug("Draft %s replaced %s for %s", change.id, replaced.id, change.primary_path)
        return replaced

    def remove(self, change_id: str) -> DraftChange:
        for key, change in self._changes.items():
            if change.id == change_id:
                del self._changes[key]
                break
        else:
            raise DraftNotFoundError(change_id)
        if self._repo is not None:
            self._repo.delete(self.repository_id, self.branch, change_id)
        self._touch()
        return change

    def discard(self, change_ids: set[str] | frozenset[str]) -> int:
        """Drop the given changes, ignoring ids no longer queued.

        Used after publish: a change replaced while the publish ran has a new id
        and stays queued.
        """
        removed = 0
        for key in [k for k, c in self._changes.items() if c.id in change_ids]:
            change = self._changes.pop(key)
            if self._repo is not None:
                self._repo.delete(self.repository_id, self.branch, change.id)
            removed += 1
        self._touch()
        return removed

    def clear(self) -> int:
        count = len(self._changes)
        self._changes.clear()
        if self._repo is not None:
            self._repo.clear(self.repository_id, self.branch)
        self._touch()
        return count

    def list(self) -> tuple[DraftChange, ...]:
        return tuple(self._changes.values())

    def get(self, change_id: str) -> DraftChange | None:
        for change in self._changes.values():
            if change.id == change_id:
                return change
        return None

    def find_by_primary_path(self, primary_path: str) -> DraftChange | None:
        return self._changes.get(primary_path)

    def snapshot(self) -> dict[str, Any]:
        changes = self.list()
        return {
            "repository_id": self.repository_id,
            "branch": self.branch,
            "size": len(changes),
            "changes": [c.to_summary() for c in changes],
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def _insert(self, change: DraftChange) -> DraftChange | None:
        replaced = self._changes.pop(change.primary_path, None)
        self._changes[change.primary_path] = change
        return replaced

    def _touch(self) -> None:
        if not self._changes:
            self.created_at = None
            self.updated_at = None
        else:
            self.updated_at = time.time()
