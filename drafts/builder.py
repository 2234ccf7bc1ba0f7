"""
CommitBuilder — turns staged changes into exactly one commit.

Steps:
1. resolve branch head and its root tree
2. flatten operations, last write wins per path; drop deletes of paths the
   head tree does not contain, since the remote rejects them
3. upload base64 writes as blobs (bounded concurrent batches)
4. one create_tree call with every write and delete
5. create the commit on top of the resolved head
6. move the branch ref (the only externally visible step)

Nothing before step 6 is visible to other readers. A failure anywhere raises a
CommitFailure subclass and leaves the ref untouched; objects created by a failed
attempt are unreferenced and left for the remote's garbage collection.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from drafts.errors import (
    BlobCreationFailed,
    CommitCreationFailed,
    EmptyQueueError,
    HeadResolutionFailed,
    PartialBatchError,
    RefUpdateFailed,
    RemoteConflictError,
    RemoteError,
    RemoteNotFoundError,
    RemotePermissionError,
    TreeCreationFailed,
)
from drafts.models import DeleteOperation, DraftChange, PublishResult, WriteOperation, flatten_operations
from remote.base import FILE_MODE, RefUpdateResult, RemoteContentClient, TreeEntry

logger = logging.getLogger(__name__)

DEFAULT_BLOB_BATCH_SIZE = 5


class CommitBuilder:
    """Builds one commit per call against a remote content client."""

    def __init__(self, client: RemoteContentClient, *, blob_batch_size: int = DEFAULT_BLOB_BATCH_SIZE) -> None:
        if blob_batch_size < 1:
            raise ValueError(f"blob_batch_size must be positive, got {blob_batch_size}")
        self.client = client
        self.blob_batch_size = blob_batch_size

    async def build(self, branch: str, changes: Sequence[DraftChange], message: str) -> PublishResult:
        if not changes:
            raise EmptyQueueError()

        head, base_tree = await self._resolve_head(branch)

        operations = flatten_operations(changes)
        writes = [op for op in operations if isinstance(op, WriteOperation)]
        deletes = [op for op in operations if isinstance(op, DeleteOperation)]
        if deletes:
            existing = await self._head_paths(branch, base_tree)
            skipped = [op.path for op in deletes if op.path not in existing]
            if skipped:
                # created and deleted again while staged, or already gone from the head
                logger.info("Skipping delete of %d path(s) absent from %s: %s", len(skipped), branch, skipped)
                deletes = [op for op in deletes if op.path in existing]

        if not writes and not deletes:
            logger.info("Nothing to commit on %s for %d change(s)", branch, len(changes))
            return PublishResult(
                commit_id=head,
                file_count=0,
                branch=branch,
                published_change_ids=tuple(c.id for c in changes),
            )

        blob_ids = await self._upload_blobs([op for op in writes if op.encoding == "base64"])

        entries: list[TreeEntry] = []
        for op in writes:
            if op.encoding == "base64":
                entries.append(TreeEntry(path=op.path, mode=FILE_MODE, object_id=blob_ids[op.path]))
            else:
                entries.append(TreeEntry(path=op.path, mode=FILE_MODE, content=op.content.decode("utf-8")))
        entries.extend(TreeEntry(path=op.path, mode=FILE_MODE, object_id=None) for op in deletes)

        # @@@single-tree - all entries go into one tree; a per-file tree would expose partial states.
        try:
            tree_id = await self.client.create_tree(base_tree, entries)
        except RemoteError as e:
            raise TreeCreationFailed(f"Failed to create tree: {e}", orphaned_objects=bool(blob_ids)) from e

        try:
            commit_id = await self.client.create_commit(tree_id, head, message)
        except RemoteError as e:
            raise CommitCreationFailed(f"Failed to create commit: {e}", orphaned_objects=True) from e

        await self._move_ref(branch, commit_id)

        logger.info(
            "Published %d file(s) from %d change(s) to %s as %s",
            len(entries),
            len(changes),
            branch,
            commit_id[:12],
        )
        return PublishResult(
            commit_id=commit_id,
            file_count=len(entries),
            branch=branch,
            published_change_ids=tuple(c.id for c in changes),
        )

    async def _resolve_head(self, branch: str) -> tuple[str, str]:
        try:
            head = await self.client.get_ref(branch)
            base_tree = await self.client.get_commit_tree(head)
        except RemoteError as e:
            raise HeadResolutionFailed(f"Failed to resolve head of {branch}: {e}") from e
        return head, base_tree

    async def _head_paths(self, branch: str, tree_id: str) -> set[str]:
        try:
            listing = await self.client.list_tree(tree_id, recursive=True)
        except RemoteError as e:
            raise HeadResolutionFailed(f"Failed to list files of {branch}: {e}") from e
        return {item.path for item in listing if item.type == "blob"}

    async def _upload_blobs(self, writes: list[WriteOperation]) -> dict[str, str]:
        """Upload binary payloads; concurrent within a batch, sequential across batches."""
        blob_ids: dict[str, str] = {}
        size = self.blob_batch_size
        for start in range(0, len(writes), size):
            batch = writes[start : start + size]
            results = await asyncio.gather(
                *(self.client.create_blob(op.content, op.encoding) for op in batch),
                return_exceptions=True,
            )
            failed: tuple[WriteOperation, BaseException] | None = None
            for op, result in zip(batch, results):
                if isinstance(result, BaseException):
                    if failed is None:
                        failed = (op, result)
                    continue
                blob_ids[op.path] = result
            if failed is not None:
                op, exc = failed
                if not isinstance(exc, Exception):
                    raise exc
                if blob_ids:
                    raise PartialBatchError(op.path, str(exc), created=len(blob_ids)) from exc
                raise BlobCreationFailed(op.path, str(exc)) from exc
            logger.debug("Uploaded blob batch %d-%d of %d", start + 1, start + len(batch), len(writes))
        return blob_ids

    async def _move_ref(self, branch: str, commit_id: str) -> None:
        try:
            result = await self.client.update_ref(branch, commit_id)
        except RemoteConflictError as e:
            raise RefUpdateFailed(branch, "conflict", str(e)) from e
        except (RemotePermissionError, RemoteNotFoundError) as e:
            # missing ref, or one the token may not see (GitHub answers 404 for both)
            raise RefUpdateFailed(branch, "permission", str(e)) from e
        except RemoteError as e:
            raise RefUpdateFailed(branch, "network", str(e)) from e
        if result is RefUpdateResult.CONFLICT:
            raise RefUpdateFailed(branch, "conflict", "branch moved since its head was resolved")
