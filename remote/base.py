"""
Abstract remote content client interface.

The commit engine only talks to the remote repository through this interface.

Implementations:
- GitHubContentClient: GitHub git data + contents REST API (remote/github.py)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum

FILE_MODE = "100644"


class RefUpdateResult(str, Enum):
    SUCCESS = "success"
    CONFLICT = "conflict"


@dataclass(frozen=True)
class TreeEntry:
    """One entry of a create_tree request.

    object_id=None together with content=None removes ``path`` from the base tree.
    """

    path: str
    mode: str = FILE_MODE
    object_id: str | None = None
    content: str | None = None

    @property
    def is_delete(self) -> bool:
        return self.object_id is None and self.content is None


@dataclass(frozen=True)
class TreeItem:
    """One entry of a tree listing."""

    path: str
    type: str  # 'blob' or 'tree'
    size: int | None = None


@dataclass(frozen=True)
class RepositoryInfo:
    id: str
    owner: str
    name: str
    full_name: str
    default_branch: str


@dataclass(frozen=True)
class BranchInfo:
    name: str
    last_commit: str
    is_template: bool = False
    domain: str | None = None


class RemoteContentClient(ABC):
    """Remote version-control object API for one repository.

    Every method raises a ``drafts.errors.RemoteError`` subclass on failure.
    """

    name: str

    # ==================== Refs and commits ====================

    @abstractmethod
    async def get_ref(self, branch: str) -> str:
        """Return the head commit id of ``branch``."""

    @abstractmethod
    async def get_commit_tree(self, commit_id: str) -> str:
        """Return the root tree id of a commit."""

    @abstractmethod
    async def update_ref(self, branch: str, commit_id: str) -> RefUpdateResult:
        """Move ``branch`` to ``commit_id`` (fast-forward only)."""

    @abstractmethod
    async def create_commit(self, tree_id: str, parent_commit_id: str, message: str) -> str:
        """Create a single-parent commit object."""

    # ==================== Objects ====================

    @abstractmethod
    async def create_blob(self, content: bytes, encoding: str) -> str:
        """Upload file bytes, return the blob id."""

    @abstractmethod
    async def create_tree(self, base_tree_id: str, entries: list[TreeEntry]) -> str:
        """Create a tree from ``base_tree_id`` with all ``entries`` applied."""

    # ==================== Reading ====================

    @abstractmethod
    async def get_file_content(self, path: str, ref: str) -> bytes | None:
        """Return raw file bytes at ``ref`` or None when missing."""

    @abstractmethod
    async def list_tree(self, ref: str, recursive: bool = True) -> list[TreeItem]:
        """List tree entries at ``ref``."""

    # ==================== Repository ====================

    @abstractmethod
    async def get_repository(self) -> RepositoryInfo:
        """Fetch repository metadata (also verifies access)."""

    @abstractmethod
    async def list_branches(self) -> list[BranchInfo]:
        """List branches of the repository."""

    @abstractmethod
    async def create_branch(self, name: str, from_commit_id: str) -> None:
        """Create ``refs/heads/<name>`` pointing at ``from_commit_id``."""

    async def close(self) -> None:
        """Release network resources."""
        return None
