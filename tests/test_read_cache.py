import json

import pytest

from drafts.cache import LocalReadCache
from drafts.errors import RemoteTransientError
from drafts.models import DeleteOperation, DraftChange, WriteOperation
from tests.fakes.remote import FakeRemoteClient

POST = """---
title: Hello
pubDate: 2024-01-02
author:
  name: Ada
  url: https://example.com
tags: [a, b]
---

Body text
"""


@pytest.fixture
def remote() -> FakeRemoteClient:
    client = FakeRemoteClient()
    client.seed(
        "main",
        {
            "src/content/blog/hello.md": POST,
            "src/config/theme.json": json.dumps({"primary": "#000000"}),
            "README.md": "readme",
        },
    )
    return client


@pytest.mark.asyncio
async def test_resync_indexes_posts_and_config(remote):
    cache = LocalReadCache(remote)
    await cache.resync("main")

    post = cache.get_post("hello")
    assert post is not None
    assert post.title == "Hello"
    assert post.author == "Ada"
    assert post.tags == ["a", "b"]
    assert cache.theme.primary == "#000000"
    assert cache.site_config is None
    assert cache.has_file("README.md")
    assert not cache.has_file("src")
    # only posts and config files are fetched eagerly
    assert "README.md" not in [args[0] for name, args in remote.calls if name == "get_file_content"]


@pytest.mark.asyncio
async def test_listing_matches_remote_tree(remote):
    cache = LocalReadCache(remote)
    await cache.resync("main")

    assert [i.path for i in cache.listing()] == [i.path for i in await remote.list_tree("main")]


@pytest.mark.asyncio
async def test_failed_file_fetch_is_skipped(remote):
    remote.fail_on("get_file_content", RemoteTransientError("502"))
    cache = LocalReadCache(remote)

    await cache.resync("main")

    assert cache.branch == "main"
    assert cache.has_file("src/content/blog/hello.md")


@pytest.mark.asyncio
async def test_apply_changes_updates_listing_and_posts(remote):
    cache = LocalReadCache(remote)
    await cache.resync("main")

    cache.apply_changes(
        [
            DraftChange(
                kind="post.create",
                title="new",
                primary_path="src/content/blog/new.md",
                operations=(WriteOperation.text("src/content/blog/new.md", "---\ntitle: New\n---\nx"),),
            ),
            DraftChange(
                kind="file.delete",
                title="rm",
                primary_path="README.md",
                operations=(DeleteOperation("README.md"),),
            ),
        ]
    )

    assert cache.get_post("new").title == "New"
    assert not cache.has_file("README.md")
    assert cache.get_content("src/content/blog/new.md").startswith(b"---")


def test_patch_creates_and_prunes_directories():
    cache = LocalReadCache(FakeRemoteClient())
    cache.patch("a/b/c.txt", b"x")
    assert {i.path for i in cache.listing()} == {"a", "a/b", "a/b/c.txt"}

    cache.patch("a/b/c.txt", None)
    assert cache.listing() == []


@pytest.mark.asyncio
async def test_invalidate_all_drops_state(remote):
    cache = LocalReadCache(remote)
    await cache.resync("main")

    cache.invalidate_all()

    assert cache.branch is None
    assert cache.posts() == []
    assert cache.theme is None
