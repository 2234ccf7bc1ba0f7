"""
EditorSession — explicit context for one connected repository.

Owns the remote client, the active branch, the draft queue and the read cache.
Callers hold the session and pass it around; nothing here is process-global.

Concurrency:
    Publish, immediate commits and branch switches run under one asyncio.Lock.
    Staging never awaits between reading state and enqueueing, so it cannot
    interleave with itself; it is rejected while a branch switch is running.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import asdict, dataclass, replace
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from drafts.builder import DEFAULT_BLOB_BATCH_SIZE, CommitBuilder
from drafts.cache import LocalReadCache
from drafts.errors import BranchChangedError, DraftNotFoundError, EmptyQueueError, RemoteError, ValidationError
from drafts.mode import EditIntent, EditMode, EditOutcome, decide
from drafts.models import DraftChange, PublishResult
from drafts.queue import DraftQueue
from remote.base import BranchInfo, RemoteContentClient

if TYPE_CHECKING:
    from storage.contracts import DraftRepo

logger = logging.getLogger(__name__)

SITE_BRANCH_PREFIX = "site-"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def branch_for_domain(domain: str) -> str:
    """``my-blog.com`` -> ``site-my-blog-com``."""
    cleaned = re.sub(r"[^a-zA-Z0-9-]", "-", (domain or "").strip()).lower()
    if not cleaned.strip("-"):
        raise ValidationError("Domain name is required")
    return f"{SITE_BRANCH_PREFIX}{cleaned}"


def domain_for_branch(name: str) -> str | None:
    if not name.startswith(SITE_BRANCH_PREFIX):
        return None
    return name[len(SITE_BRANCH_PREFIX) :].replace("-", ".")


@dataclass
class RepositoryHandle:
    id: str
    owner: str
    name: str
    full_name: str
    default_branch: str
    active_branch: str
    last_synced: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {**asdict(self), "connected": True}


class EditorSession:
    """One connected repository with its branch, queue and cache."""

    def __init__(
        self,
        client: RemoteContentClient,
        repository: RepositoryHandle,
        *,
        deferred: bool = False,
        blob_batch_size: int = DEFAULT_BLOB_BATCH_SIZE,
        draft_repo: DraftRepo | None = None,
        posts_dir: str = "src/content/blog",
        theme_path: str = "src/config/theme.json",
        site_config_path: str = "src/config/site.json",
        default_message: str = "Publish {count} change(s)",
    ) -> None:
        self.client = client
        self.repository = repository
        self.deferred = deferred
        self.default_message = default_message
        self.branches: list[BranchInfo] = []
        self.cache = LocalReadCache(
            client,
            posts_dir=posts_dir,
            theme_path=theme_path,
            site_config_path=site_config_path,
        )
        self.builder = CommitBuilder(client, blob_batch_size=blob_batch_size)
        self._draft_repo = draft_repo
        self.queue = self._open_queue(repository.active_branch)
        self._lock = asyncio.Lock()
        self._generation = 0
        self._switching = False

    @classmethod
    async def connect(cls, client: RemoteContentClient, **options: Any) -> EditorSession:
        """Verify access, restore staged drafts and load the default branch."""
        info = await client.get_repository()
        handle = RepositoryHandle(
            id=info.id,
            owner=info.owner,
            name=info.name,
            full_name=info.full_name,
            default_branch=info.default_branch,
            active_branch=info.default_branch,
        )
        session = cls(client, handle, **options)
        await session.sync()
        logger.info("Connected %s on %s (%d staged)", handle.full_name, handle.active_branch, len(session.queue))
        return session

    @property
    def branch(self) -> str:
        return self.repository.active_branch

    @property
    def publishing(self) -> bool:
        return self._lock.locked()

    # ==================== Sync and branches ====================

    async def sync(self) -> None:
        async with self._lock:
            await self.refresh_branches()
            await self._resync()
            self.repository.last_synced = _now_iso()

    async def refresh_branches(self) -> list[BranchInfo]:
        branches = await self.client.list_branches()
        self.branches = [
            replace(
                b,
                is_template=b.name == self.repository.default_branch,
                domain=domain_for_branch(b.name),
            )
            for b in branches
        ]
        return self.branches

    async def switch_branch(self, branch: str) -> None:
        """Destroy the queue and cache, then load ``branch``."""
        if not branch:
            raise ValidationError("Branch name is required")
        async with self._lock:
            self._switching = True
            try:
                await self.client.get_ref(branch)
                dropped = self.queue.clear()
                if dropped:
                    logger.warning("Discarded %d staged change(s) on %s by branch switch", dropped, self.branch)
                self.cache.invalidate_all()
                self.repository.active_branch = branch
                self._generation += 1
                self.queue = self._open_queue(branch)
                await self._resync()
                self.repository.last_synced = _now_iso()
            finally:
                self._switching = False
        logger.info("Switched %s to %s", self.repository.full_name, branch)

    async def create_site_branch(self, domain: str) -> BranchInfo:
        """Create ``site-<domain>`` from the default branch and switch to it."""
        name = branch_for_domain(domain)
        head = await self.client.get_ref(self.repository.default_branch)
        await self.client.create_branch(name, head)
        await self.refresh_branches()
        await self.switch_branch(name)
        return BranchInfo(name=name, last_commit=head, is_template=False, domain=domain)

    # ==================== Editing ====================

    async def apply_edit(self, intent: EditIntent, *, queue_only: bool = False) -> EditOutcome:
        """Stage or commit one edit, then patch the cache."""
        change = intent.to_change()
        mode = decide(queue_only, self.deferred)
        if mode is EditMode.STAGE:
            replaced = self.enqueue(change)
            return EditOutcome(mode=mode, change=change, replaced_change_id=replaced.id if replaced else None)

        self._check_not_switching()
        message = intent.commit_message or intent.title
        generation = self._generation
        async with self._lock:
            if generation != self._generation:
                raise BranchChangedError(f"Active branch changed to {self.branch} before commit started")
            result = await self.builder.build(self.branch, [change], message)
            self.cache.apply_changes([change])
        return EditOutcome(mode=mode, change=change, commit=result)

    def enqueue(self, change: DraftChange) -> DraftChange | None:
        self._check_not_switching()
        replaced = self.queue.enqueue(change)
        self.cache.apply_changes([change])
        return replaced

    def list(self) -> tuple[DraftChange, ...]:
        return self.queue.list()

    async def remove(self, change_id: str) -> DraftChange:
        """Unstage one change and restore the cached view of its files."""
        change = self.queue.get(change_id)
        if change is None:
            raise DraftNotFoundError(change_id)
        # read before unstaging so a failed read leaves the change queued
        committed = await self._read_committed(change.paths)
        self.queue.remove(change_id)
        self._restore_paths(committed)
        return change

    async def clear_all(self) -> int:
        count = self.queue.clear()
        if count:
            async with self._lock:
                await self._resync()
        return count

    async def publish(self, message: str | None = None) -> PublishResult:
        self._check_not_switching()
        generation = self._generation
        async with self._lock:
            if generation != self._generation:
                raise BranchChangedError(f"Active branch changed to {self.branch} before publish started")
            changes = self.queue.list()
            if not changes:
                raise EmptyQueueError()
            text = (message or "").strip() or self.default_message.format(count=len(changes))
            result = await self.builder.build(self.branch, changes, text)
            self.queue.discard(frozenset(result.published_change_ids))
            try:
                await self._resync()
            except RemoteError as e:
                # the commit is already visible; fall back to patching the cache
                logger.warning("Resync after publish %s failed: %s", result.commit_id[:12], e)
                self.cache.apply_changes(changes)
        return result

    def status(self) -> dict[str, Any]:
        return {
            "repository": self.repository.to_dict(),
            "branch": self.branch,
            "deferred": self.deferred,
            "publishing": self.publishing,
            "queue": self.queue.snapshot(),
        }

    # ==================== Teardown ====================

    async def disconnect(self) -> None:
        """Destroy staged changes and cached state, release the client."""
        self.queue.clear()
        self.cache.invalidate_all()
        await self.client.close()

    async def close(self) -> None:
        """Release the client, keeping persisted drafts for the next connect."""
        await self.client.close()

    # ==================== Internals ====================

    def _check_not_switching(self) -> None:
        if self._switching:
            raise BranchChangedError(f"Branch switch in progress on {self.repository.full_name}")

    def _open_queue(self, branch: str) -> DraftQueue:
        if self._draft_repo is None:
            return DraftQueue(self.repository.id, branch)
        return DraftQueue.restore(self.repository.id, branch, self._draft_repo)

    async def _resync(self) -> None:
        await self.cache.resync(self.branch)
        # staged edits stay visible over the freshly synced head
        self.cache.apply_changes(self.queue.list())

    async def _read_committed(self, paths: tuple[str, ...]) -> dict[str, bytes | None]:
        branch = self.branch
        results = await asyncio.gather(*(self.client.get_file_content(p, branch) for p in paths))
        return dict(zip(paths, results))

    def _restore_paths(self, committed: dict[str, bytes | None]) -> None:
        for path, content in committed.items():
            self.cache.patch(path, content)
        touching = [c for c in self.queue.list() if set(c.paths) & committed.keys()]
        self.cache.apply_changes(touching)
