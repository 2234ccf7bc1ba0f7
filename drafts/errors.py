"""Error hierarchy for staging and publishing.

Remote* errors are raised by remote content clients. CommitFailure and its
subclasses are raised by the commit builder and always mean the branch ref was
not moved, so retrying the whole publish from scratch is safe.
"""

from __future__ import annotations

from typing import Any, Literal

RefFailureReason = Literal["conflict", "permission", "network"]


class EditorError(Exception):
    """Base error for all repopress operations."""


class ValidationError(EditorError):
    """Bad path, missing content or unknown encoding in an edit request."""


class NotConnectedError(EditorError):
    """No repository is connected."""


class NotFoundError(EditorError):
    """A post, file or staged change does not exist."""


class DraftNotFoundError(NotFoundError):
    """No staged change with the given id."""

    def __init__(self, change_id: str) -> None:
        super().__init__(f"Draft change not found: {change_id}")
        self.change_id = change_id


class BranchChangedError(EditorError):
    """The active branch changed (or is changing) under a running request."""


# ---------------------------------------------------------------------------
# Remote client errors
# ---------------------------------------------------------------------------


class RemoteError(EditorError):
    """A call against the remote object API failed."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RemoteTransientError(RemoteError):
    """Network failure, timeout, 5xx or rate limiting. Safe to retry."""


class RemoteConflictError(RemoteError):
    """The ref moved since it was read (non fast-forward update)."""


class RemotePermissionError(RemoteError):
    """The token is missing, invalid or lacks write access."""


class RemoteNotFoundError(RemoteError):
    """Repository, ref or object does not exist."""


# ---------------------------------------------------------------------------
# Publish failures
# ---------------------------------------------------------------------------


class CommitFailure(EditorError):
    """Publish aborted before the branch ref moved.

    Attributes:
        stage: Algorithm step that failed (head, blob, tree, commit, ref, empty).
        orphaned_objects: True when blob/tree/commit objects were created on the
            remote before the failure. They are unreferenced and left for the
            remote's garbage collection.
        requires_rebuild: True when the head must be re-resolved and the tree
            rebuilt; resubmitting the same commit would fail again.

    """

    stage = "publish"
    requires_rebuild = False

    def __init__(self, message: str, *, orphaned_objects: bool = False) -> None:
        super().__init__(message)
        self.orphaned_objects = orphaned_objects

    @property
    def retry_safe(self) -> bool:
        return True

    def to_dict(self) -> dict[str, Any]:
        return {
            "stage": self.stage,
            "message": str(self),
            "retry_safe": self.retry_safe,
            "orphaned_objects": self.orphaned_objects,
            "requires_rebuild": self.requires_rebuild,
        }


class EmptyQueueError(CommitFailure):
    stage = "empty"

    def __init__(self) -> None:
        super().__init__("No changes to publish")


class HeadResolutionFailed(CommitFailure):
    stage = "head"


class BlobCreationFailed(CommitFailure):
    stage = "blob"

    def __init__(self, path: str, message: str, *, orphaned_objects: bool = False) -> None:
        super().__init__(f"Failed to create blob for {path}: {message}", orphaned_objects=orphaned_objects)
        self.path = path


class PartialBatchError(BlobCreationFailed):
    """Some blobs were uploaded before another blob in the run failed."""

    def __init__(self, path: str, message: str, *, created: int) -> None:
        super().__init__(path, message, orphaned_objects=True)
        self.created = created


class TreeCreationFailed(CommitFailure):
    stage = "tree"


class CommitCreationFailed(CommitFailure):
    stage = "commit"


class RefUpdateFailed(CommitFailure):
    stage = "ref"

    def __init__(self, branch: str, reason: RefFailureReason, message: str) -> None:
        super().__init__(f"Failed to update {branch} ({reason}): {message}", orphaned_objects=True)
        self.branch = branch
        self.reason = reason

    @property
    def requires_rebuild(self) -> bool:  # type: ignore[override]
        return self.reason == "conflict"
