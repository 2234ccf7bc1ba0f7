"""
LocalReadCache — materialized view of one repository branch.

Holds the file listing, raw contents of files read so far, parsed posts and the
theme/site configuration objects. ``resync`` rebuilds everything from the remote
and swaps it in at once; ``patch`` applies one optimistic file change so reads
reflect staged and just-committed edits without a round trip.
"""

from __future__ import annotations

import asyncio
import json
import logging
import posixpath
from dataclasses import dataclass, field

from pydantic import ValidationError as PydanticValidationError

from content.posts import Post, is_post_path, parse_post
from content.site import SiteConfig, ThemeSettings
from drafts.errors import RemoteError
from drafts.models import DeleteOperation, DraftChange, WriteOperation
from remote.base import RemoteContentClient, TreeItem

logger = logging.getLogger(__name__)

FETCH_CONCURRENCY = 8


@dataclass
class _CacheState:
    branch: str | None = None
    items: dict[str, TreeItem] = field(default_factory=dict)
    contents: dict[str, bytes] = field(default_factory=dict)
    posts: dict[str, Post] = field(default_factory=dict)
    theme: ThemeSettings | None = None
    site_config: SiteConfig | None = None


class LocalReadCache:
    """Per-(repository, branch) read cache."""

    def __init__(
        self,
        client: RemoteContentClient,
        *,
        posts_dir: str = "src/content/blog",
        theme_path: str = "src/config/theme.json",
        site_config_path: str = "src/config/site.json",
    ) -> None:
        self.client = client
        self.posts_dir = posts_dir.strip("/")
        self.theme_path = theme_path.strip("/")
        self.site_config_path = site_config_path.strip("/")
        self._state = _CacheState()

    # ==================== Lifecycle ====================

    @property
    def branch(self) -> str | None:
        return self._state.branch

    async def resync(self, branch: str) -> None:
        """Full rebuild from the remote head of ``branch``."""
        listing = await self.client.list_tree(branch, recursive=True)
        state = _CacheState(branch=branch, items={item.path: item for item in listing})

        wanted = [
            item.path
            for item in listing
            if item.type == "blob"
            and (is_post_path(item.path, self.posts_dir) or item.path in (self.theme_path, self.site_config_path))
        ]
        for start in range(0, len(wanted), FETCH_CONCURRENCY):
            chunk = wanted[start : start + FETCH_CONCURRENCY]
            results = await asyncio.gather(
                *(self.client.get_file_content(path, branch) for path in chunk),
                return_exceptions=True,
            )
            for path, result in zip(chunk, results):
                if isinstance(result, RemoteError):
                    logger.warning("Failed to fetch %s@%s: %s", path, branch, result)
                    continue
                if isinstance(result, BaseException):
                    raise result
                if result is not None:
                    state.contents[path] = result
                    self._index(state, path, result)

        self._state = state
        logger.info(
            "Synced %s: %d entries, %d posts",
            branch,
            len(state.items),
            len(state.posts),
        )

    def invalidate_all(self) -> None:
        self._state = _CacheState()

    # ==================== Optimistic updates ====================

    def patch(self, path: str, content: bytes | None) -> None:
        """Apply one write (bytes) or delete (None) to the cached view."""
        state = self._state
        if content is None:
            state.items.pop(path, None)
            state.contents.pop(path, None)
            self._prune_dirs(state, path)
            self._unindex(state, path)
            return
        self._ensure_dirs(state, path)
        state.items[path] = TreeItem(path=path, type="blob", size=len(content))
        state.contents[path] = content
        self._index(state, path, content)

    def apply_changes(self, changes: tuple[DraftChange, ...] | list[DraftChange]) -> None:
        for change in changes:
            for op in change.operations:
                if isinstance(op, WriteOperation):
                    self.patch(op.path, op.content)
                elif isinstance(op, DeleteOperation):
                    self.patch(op.path, None)

    def remember(self, path: str, content: bytes) -> None:
        """Store content read from the remote without touching the listing."""
        self._state.contents[path] = content

    # ==================== Reads ====================

    def listing(self) -> list[TreeItem]:
        return sorted(self._state.items.values(), key=lambda item: item.path)

    def has_file(self, path: str) -> bool:
        item = self._state.items.get(path)
        return item is not None and item.type == "blob"

    def get_content(self, path: str) -> bytes | None:
        return self._state.contents.get(path)

    def posts(self) -> list[Post]:
        return list(self._state.posts.values())

    def get_post(self, slug: str) -> Post | None:
        return self._state.posts.get(slug)

    @property
    def theme(self) -> ThemeSettings | None:
        return self._state.theme

    @property
    def site_config(self) -> SiteConfig | None:
        return self._state.site_config

    # ==================== Internals ====================

    def _index(self, state: _CacheState, path: str, content: bytes) -> None:
        if is_post_path(path, self.posts_dir):
            try:
                text = content.decode("utf-8")
            except UnicodeDecodeError:
                logger.warning("Skipping non-UTF-8 post %s", path)
                return
            post = parse_post(path, text)
            if post is not None:
                state.posts[post.slug] = post
        elif path == self.theme_path:
            state.theme = self._load_json(path, content, ThemeSettings)
        elif path == self.site_config_path:
            state.site_config = self._load_json(path, content, SiteConfig)

    def _unindex(self, state: _CacheState, path: str) -> None:
        if is_post_path(path, self.posts_dir):
            for slug, post in list(state.posts.items()):
                if post.path == path:
                    del state.posts[slug]
        elif path == self.theme_path:
            state.theme = None
        elif path == self.site_config_path:
            state.site_config = None

    @staticmethod
    def _load_json(path: str, content: bytes, model: type[ThemeSettings] | type[SiteConfig]):
        try:
            return model.model_validate(json.loads(content.decode("utf-8")))
        except (UnicodeDecodeError, json.JSONDecodeError, PydanticValidationError) as e:
            logger.warning("Ignoring invalid config %s: %s", path, e)
            return None

    @staticmethod
    def _ensure_dirs(state: _CacheState, path: str) -> None:
        parent = posixpath.dirname(path)
        while parent:
            if parent not in state.items:
                state.items[parent] = TreeItem(path=parent, type="tree")
            parent = posixpath.dirname(parent)

    @staticmethod
    def _prune_dirs(state: _CacheState, path: str) -> None:
        parent = posixpath.dirname(path)
        while parent:
            prefix = parent + "/"
            if any(p.startswith(prefix) for p in state.items):
                return
            state.items.pop(parent, None)
            parent = posixpath.dirname(parent)
