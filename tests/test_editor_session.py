"""EditorSession: staging, publishing, branch switching."""

import asyncio

import pytest

from drafts.errors import (
    BranchChangedError,
    DraftNotFoundError,
    EmptyQueueError,
    RefUpdateFailed,
    RemoteNotFoundError,
    RemoteTransientError,
    ValidationError,
)
from drafts.mode import EditIntent, EditMode
from drafts.models import DeleteOperation, PublishResult, WriteOperation
from drafts.session import EditorSession, branch_for_domain, domain_for_branch
from storage.providers.sqlite.draft_repo import SQLiteDraftRepo
from tests.fakes.remote import FakeRemoteClient

POSTS = "src/content/blog"


def _post_text(title: str) -> str:
    return f"---\ntitle: {title}\npubDate: 2024-05-01\n---\n\n{title} body\n"


def _write_intent(path: str, text: str) -> EditIntent:
    return EditIntent(
        kind="file.write",
        title=f"Update {path}",
        primary_path=path,
        operations=(WriteOperation.text(path, text),),
    )


def _delete_intent(path: str) -> EditIntent:
    return EditIntent(
        kind="file.delete",
        title=f"Delete {path}",
        primary_path=path,
        operations=(DeleteOperation(path),),
    )


@pytest.fixture
def remote() -> FakeRemoteClient:
    client = FakeRemoteClient()
    client.seed("main", {f"{POSTS}/a.md": _post_text("A"), "README.md": "readme"})
    return client


async def _connect(remote, **options) -> EditorSession:
    return await EditorSession.connect(remote, **options)


@pytest.mark.asyncio
async def test_connect_loads_default_branch(remote):
    session = await _connect(remote)

    assert session.branch == "main"
    assert session.repository.full_name == "octo/blog"
    assert session.repository.last_synced is not None
    assert [b.name for b in session.branches] == ["main"]
    assert session.branches[0].is_template is True
    assert session.cache.get_post("a").title == "A"


@pytest.mark.asyncio
async def test_immediate_mode_commits_one_change(remote):
    session = await _connect(remote)

    outcome = await session.apply_edit(_write_intent(f"{POSTS}/a.md", _post_text("A2")))

    assert outcome.mode is EditMode.COMMIT
    assert outcome.commit.file_count == 1
    assert len(session.queue) == 0
    assert remote.files_at("main")[f"{POSTS}/a.md"] == _post_text("A2").encode()
    assert session.cache.get_post("a").title == "A2"
    assert remote.head_message("main") == f"Update {POSTS}/a.md"


@pytest.mark.asyncio
async def test_queue_only_stages_and_cache_reflects_it(remote):
    session = await _connect(remote)
    head = remote.refs["main"]

    outcome = await session.apply_edit(_write_intent(f"{POSTS}/b.md", _post_text("B")), queue_only=True)

    assert outcome.mode is EditMode.STAGE
    assert remote.refs["main"] == head
    assert session.cache.get_post("b").title == "B"
    assert len(session.list()) == 1


@pytest.mark.asyncio
async def test_deferred_mode_replaces_by_primary_path(remote):
    session = await _connect(remote, deferred=True)
    path = f"{POSTS}/a.md"

    first = await session.apply_edit(_write_intent(path, "v1"))
    second = await session.apply_edit(_write_intent("/" + path, "v2"))

    assert first.replaced_change_id is None
    assert second.replaced_change_id == first.change.id
    result = await session.publish()
    assert remote.files_at("main")[path] == b"v2"
    assert result.file_count == 1
    assert remote.head_message("main") == "Publish 1 change(s)"


@pytest.mark.asyncio
async def test_publish_empties_queue_and_cache_matches_remote(remote):
    session = await _connect(remote, deferred=True)
    await session.apply_edit(_write_intent("notes/new.md", "hello"))
    await session.apply_edit(
        EditIntent(
            kind="file.delete",
            title="rm readme",
            primary_path="README.md",
            operations=(DeleteOperation("README.md"),),
        )
    )

    result = await session.publish("Site refresh")

    assert len(session.queue) == 0
    assert remote.head_message("main") == "Site refresh"
    assert result.commit_id == remote.refs["main"]
    listing = [i.path for i in session.cache.listing()]
    assert listing == [i.path for i in await remote.list_tree("main")]
    assert "README.md" not in listing


@pytest.mark.asyncio
async def test_publish_empty_queue(remote):
    session = await _connect(remote)
    remote.reset_calls()

    with pytest.raises(EmptyQueueError):
        await session.publish()

    assert remote.calls == []


@pytest.mark.asyncio
async def test_conflict_leaves_queue_unchanged(remote):
    session = await _connect(remote, deferred=True)
    await session.apply_edit(_write_intent("a.txt", "1"))
    await session.apply_edit(_write_intent("b.txt", "2"))
    before = session.list()
    remote.conflict_next_update()

    with pytest.raises(RefUpdateFailed) as exc:
        await session.publish()

    assert exc.value.reason == "conflict"
    assert session.list() == before

    # a retry rebuilds on the current head
    await session.publish()
    assert len(session.queue) == 0


@pytest.mark.asyncio
async def test_edit_staged_during_publish_survives(remote):
    session = await _connect(remote, deferred=True)
    await session.apply_edit(_write_intent("a.txt", "v1"))
    gate = asyncio.Event()
    original = remote.create_tree

    async def slow_tree(base, entries):
        await gate.wait()
        return await original(base, entries)

    remote.create_tree = slow_tree
    publishing = asyncio.create_task(session.publish())
    await asyncio.sleep(0)
    assert session.publishing

    late = await session.apply_edit(_write_intent("a.txt", "v2"))
    gate.set()
    await publishing

    assert remote.files_at("main")["a.txt"] == b"v1"
    assert session.list() == (late.change,)
    assert session.cache.get_content("a.txt") == b"v2"


@pytest.mark.asyncio
async def test_concurrent_publishes_make_one_commit(remote):
    session = await _connect(remote, deferred=True)
    await session.apply_edit(_write_intent("a.txt", "1"))
    await session.apply_edit(_write_intent("b.txt", "2"))
    remote.reset_calls()

    results = await asyncio.gather(session.publish(), session.publish(), return_exceptions=True)

    assert sum(isinstance(r, PublishResult) for r in results) == 1
    assert sum(isinstance(r, EmptyQueueError) for r in results) == 1
    assert remote.count("update_ref") == 1
    assert remote.count("create_tree") == 1
    assert len(session.queue) == 0


@pytest.mark.asyncio
async def test_staged_create_then_delete_publishes_cleanly(remote):
    session = await _connect(remote, deferred=True)
    head = remote.refs["main"]
    path = f"{POSTS}/draft.md"
    await session.apply_edit(_write_intent(path, _post_text("Draft")))
    await session.apply_edit(_delete_intent(path))

    result = await session.publish()

    assert result.file_count == 0
    assert remote.refs["main"] == head
    assert len(session.queue) == 0
    assert session.cache.get_post("draft") is None


@pytest.mark.asyncio
async def test_image_deleted_after_staged_post_is_not_sent(remote):
    session = await _connect(remote, deferred=True)
    post = f"{POSTS}/pics.md"
    image = "public/images/pic.png"
    await session.apply_edit(
        EditIntent(
            kind="post.create",
            title="Create post: Pics",
            primary_path=post,
            operations=(WriteOperation.text(post, _post_text("Pics")), WriteOperation.binary(image, b"\x89PNG")),
        )
    )
    await session.apply_edit(_delete_intent(image))

    await session.publish()

    files = remote.files_at("main")
    assert post in files
    assert image not in files
    assert len(session.queue) == 0


@pytest.mark.asyncio
async def test_switch_branch_clears_queue_and_cache(remote):
    remote.seed("site-blog-com", {"only-here.md": "x"})
    session = await _connect(remote, deferred=True)
    await session.apply_edit(_write_intent("a.txt", "staged"))

    await session.switch_branch("site-blog-com")

    assert session.branch == "site-blog-com"
    assert len(session.queue) == 0
    assert session.cache.has_file("only-here.md")
    assert not session.cache.has_file("a.txt")


@pytest.mark.asyncio
async def test_publish_started_before_switch_is_rejected(remote):
    remote.seed("site-blog-com", {"x.md": "x"})
    session = await _connect(remote, deferred=True)
    await session.apply_edit(_write_intent("a.txt", "1"))
    gate = asyncio.Event()
    original = remote.list_tree

    async def slow_list(ref, recursive=True):
        await gate.wait()
        return await original(ref, recursive)

    remote.list_tree = slow_list
    switching = asyncio.create_task(session.switch_branch("site-blog-com"))
    await asyncio.sleep(0)
    publishing = asyncio.create_task(session.publish())
    await asyncio.sleep(0)

    with pytest.raises(BranchChangedError):
        await session.apply_edit(_write_intent("b.txt", "2"))

    gate.set()
    await switching
    with pytest.raises(BranchChangedError):
        await publishing
    assert "a.txt" not in remote.files_at("site-blog-com")


@pytest.mark.asyncio
async def test_switch_to_missing_branch_keeps_state(remote):
    session = await _connect(remote, deferred=True)
    await session.apply_edit(_write_intent("a.txt", "1"))

    with pytest.raises(RemoteNotFoundError):
        await session.switch_branch("nope")

    assert session.branch == "main"
    assert len(session.queue) == 1


@pytest.mark.asyncio
async def test_remove_restores_remote_content(remote):
    session = await _connect(remote, deferred=True)
    path = f"{POSTS}/a.md"
    outcome = await session.apply_edit(_write_intent(path, _post_text("Edited")))
    assert session.cache.get_post("a").title == "Edited"

    await session.remove(outcome.change.id)

    assert len(session.queue) == 0
    assert session.cache.get_post("a").title == "A"


@pytest.mark.asyncio
async def test_remove_staged_new_file_drops_it_from_cache(remote):
    session = await _connect(remote, deferred=True)
    outcome = await session.apply_edit(_write_intent("new/file.txt", "x"))

    await session.remove(outcome.change.id)

    assert not session.cache.has_file("new/file.txt")


@pytest.mark.asyncio
async def test_remove_keeps_change_when_remote_read_fails(remote):
    session = await _connect(remote, deferred=True)
    outcome = await session.apply_edit(_write_intent("README.md", "draft"))
    remote.fail_on("get_file_content", RemoteTransientError("timeout"))

    with pytest.raises(RemoteTransientError):
        await session.remove(outcome.change.id)

    assert session.list() == (outcome.change,)
    assert session.cache.get_content("README.md") == b"draft"

    await session.remove(outcome.change.id)
    assert len(session.queue) == 0
    assert session.cache.get_content("README.md") == b"readme"


@pytest.mark.asyncio
async def test_remove_unknown_change(remote):
    session = await _connect(remote, deferred=True)

    with pytest.raises(DraftNotFoundError):
        await session.remove("missing")


@pytest.mark.asyncio
async def test_clear_all_resyncs(remote):
    session = await _connect(remote, deferred=True)
    await session.apply_edit(_write_intent("README.md", "changed"))

    assert await session.clear_all() == 1
    assert session.cache.get_content("README.md") in (None, b"readme")
    assert await session.clear_all() == 0


@pytest.mark.asyncio
async def test_create_site_branch(remote):
    session = await _connect(remote)

    branch = await session.create_site_branch("My-Blog.com")

    assert branch.name == "site-my-blog-com"
    assert session.branch == "site-my-blog-com"
    assert remote.refs["site-my-blog-com"] == remote.refs["main"]
    assert {b.name: b.domain for b in session.branches}["site-my-blog-com"] == "my.blog.com"


@pytest.mark.asyncio
async def test_drafts_survive_reconnect(remote, tmp_path):
    repo = SQLiteDraftRepo(tmp_path / "repopress.db")
    session = await _connect(remote, deferred=True, draft_repo=repo)
    await session.apply_edit(_write_intent("a.txt", "persisted"))
    await session.close()

    again = await _connect(remote, draft_repo=repo)

    assert [c.primary_path for c in again.list()] == ["a.txt"]
    assert again.cache.get_content("a.txt") == b"persisted"


@pytest.mark.asyncio
async def test_disconnect_destroys_queue(remote, tmp_path):
    repo = SQLiteDraftRepo(tmp_path / "repopress.db")
    session = await _connect(remote, deferred=True, draft_repo=repo)
    await session.apply_edit(_write_intent("a.txt", "x"))

    await session.disconnect()

    assert remote.closed
    assert repo.load("42", "main") == []


def test_branch_domain_mapping():
    assert branch_for_domain("my-blog.com") == "site-my-blog-com"
    assert domain_for_branch("site-my-blog-com") == "my.blog.com"
    assert domain_for_branch("main") is None
    with pytest.raises(ValidationError):
        branch_for_domain("  ")
