"""CommitBuilder against the in-memory fake remote."""

import asyncio
import base64

import pytest

from drafts.builder import CommitBuilder
from drafts.errors import (
    BlobCreationFailed,
    CommitCreationFailed,
    EmptyQueueError,
    HeadResolutionFailed,
    PartialBatchError,
    RefUpdateFailed,
    RemoteError,
    RemoteNotFoundError,
    RemotePermissionError,
    RemoteTransientError,
    TreeCreationFailed,
)
from drafts.models import DeleteOperation, DraftChange, WriteOperation
from remote.base import FILE_MODE, TreeEntry
from tests.fakes.remote import FakeRemoteClient

PNG = base64.b64decode("iVBORw0KGgoAAAANSUhEUg==")


def _change(primary: str, *ops) -> DraftChange:
    return DraftChange(kind="file.write", title=primary, primary_path=primary, operations=ops)


@pytest.fixture
def remote() -> FakeRemoteClient:
    client = FakeRemoteClient()
    client.seed("main", {"b.md": "old b", "keep.md": "keep"})
    client.reset_calls()
    return client


@pytest.mark.asyncio
async def test_empty_batch_makes_no_remote_calls(remote):
    with pytest.raises(EmptyQueueError) as exc:
        await CommitBuilder(remote).build("main", [], "nothing")

    assert remote.calls == []
    assert exc.value.orphaned_objects is False


@pytest.mark.asyncio
async def test_write_and_delete_in_one_tree_and_one_ref_update(remote):
    changes = [
        _change("a.md", WriteOperation.text("/a.md", "hello")),
        _change("b.md", DeleteOperation("/b.md")),
    ]

    result = await CommitBuilder(remote).build("main", changes, "Publish 2 change(s)")

    assert remote.count("create_tree") == 1
    assert remote.count("update_ref") == 1
    assert remote.count("create_commit") == 1
    entries = remote.calls[remote.methods().index("create_tree")][1][1]
    assert {(e.path, e.is_delete) for e in entries} == {("a.md", False), ("b.md", True)}
    assert remote.files_at("main") == {"a.md": b"hello", "keep.md": b"keep"}
    assert result.commit_id == remote.refs["main"]
    assert result.file_count == 2
    assert result.published_change_ids == tuple(c.id for c in changes)
    assert remote.head_message("main") == "Publish 2 change(s)"


@pytest.mark.asyncio
async def test_blob_count_bounded_by_unique_paths(remote):
    changes = [
        _change(f"img/{n}.png", WriteOperation.binary(f"img/{n % 3}.png", PNG + bytes([n]))) for n in range(7)
    ] + [_change("notes.md", WriteOperation.text("notes.md", "text is inlined"))]

    result = await CommitBuilder(remote, blob_batch_size=2).build("main", changes, "many")

    assert remote.count("create_blob") <= 3
    assert remote.count("create_tree") == 1
    assert result.file_count == 4
    # the last change touching each path wins
    assert remote.files_at("main")["img/0.png"] == PNG + bytes([6])


@pytest.mark.asyncio
async def test_base64_blob_uploaded_before_tree_and_referenced(remote):
    changes = [_change("img/x.png", WriteOperation.binary("/img/x.png", PNG))]

    await CommitBuilder(remote).build("main", changes, "image")

    methods = remote.methods()
    assert methods.index("create_blob") < methods.index("create_tree")
    [entry] = remote.calls[methods.index("create_tree")][1][1]
    assert entry.path == "img/x.png"
    assert entry.object_id is not None
    assert remote.blobs[entry.object_id] == PNG


@pytest.mark.asyncio
async def test_same_path_twice_publishes_latest(remote):
    changes = [
        _change("posts/a.md", WriteOperation.text("posts/a.md", "v1")),
        _change("other.md", WriteOperation.text("posts/a.md", "v2")),
    ]

    await CommitBuilder(remote).build("main", changes, "twice")

    assert remote.files_at("main")["posts/a.md"] == b"v2"


@pytest.mark.asyncio
async def test_ref_conflict_is_typed_and_leaves_ref(remote):
    head = remote.refs["main"]
    remote.conflict_next_update()

    with pytest.raises(RefUpdateFailed) as exc:
        await CommitBuilder(remote).build("main", [_change("a.md", WriteOperation.text("a.md", "x"))], "m")

    assert exc.value.reason == "conflict"
    assert exc.value.requires_rebuild is True
    assert exc.value.orphaned_objects is True
    assert exc.value.retry_safe is True
    assert remote.refs["main"] == head


@pytest.mark.asyncio
async def test_ref_moved_concurrently_is_conflict(remote):
    remote.on_update_ref = lambda branch, _commit: remote.seed(branch, {"race.md": "other writer"})

    with pytest.raises(RefUpdateFailed) as exc:
        await CommitBuilder(remote).build("main", [_change("a.md", WriteOperation.text("a.md", "x"))], "m")

    assert exc.value.reason == "conflict"
    assert "race.md" in remote.files_at("main")


@pytest.mark.asyncio
async def test_ref_permission_failure(remote):
    remote.fail_on("update_ref", RemotePermissionError("forbidden", status_code=403))

    with pytest.raises(RefUpdateFailed) as exc:
        await CommitBuilder(remote).build("main", [_change("a.md", WriteOperation.text("a.md", "x"))], "m")

    assert exc.value.reason == "permission"
    assert exc.value.requires_rebuild is False


@pytest.mark.asyncio
async def test_head_failure_creates_nothing(remote):
    remote.fail_on("get_ref", RemoteTransientError("timeout"))

    with pytest.raises(HeadResolutionFailed) as exc:
        await CommitBuilder(remote).build("main", [_change("a.md", WriteOperation.text("a.md", "x"))], "m")

    assert exc.value.orphaned_objects is False
    assert remote.count("create_tree") == 0


@pytest.mark.asyncio
async def test_first_blob_failure_is_not_partial(remote):
    remote.fail_on("create_blob", RemoteTransientError("502"))

    with pytest.raises(BlobCreationFailed) as exc:
        await CommitBuilder(remote, blob_batch_size=1).build(
            "main", [_change("a.png", WriteOperation.binary("a.png", PNG))], "m"
        )

    assert not isinstance(exc.value, PartialBatchError)
    assert exc.value.path == "a.png"
    assert exc.value.orphaned_objects is False


@pytest.mark.asyncio
async def test_later_blob_failure_is_partial(remote):
    head = remote.refs["main"]
    changes = [_change(f"{n}.png", WriteOperation.binary(f"{n}.png", PNG + bytes([n]))) for n in range(3)]
    builder = CommitBuilder(remote, blob_batch_size=2)
    original = remote.create_blob
    seen = []

    async def flaky(content, encoding):
        seen.append(content)
        if len(seen) == 3:
            raise RemoteTransientError("rate limited")
        return await original(content, encoding)

    remote.create_blob = flaky

    with pytest.raises(PartialBatchError) as exc:
        await builder.build("main", changes, "m")

    assert exc.value.created == 2
    assert exc.value.orphaned_objects is True
    assert remote.refs["main"] == head
    assert remote.count("create_tree") == 0


@pytest.mark.asyncio
async def test_tree_and_commit_failures(remote):
    change = _change("a.md", WriteOperation.text("a.md", "x"))
    remote.fail_on("create_tree", RemoteTransientError("500"))
    with pytest.raises(TreeCreationFailed) as tree_exc:
        await CommitBuilder(remote).build("main", [change], "m")
    assert tree_exc.value.orphaned_objects is False

    remote.fail_on("create_commit", RemoteTransientError("500"))
    with pytest.raises(CommitCreationFailed) as commit_exc:
        await CommitBuilder(remote).build("main", [change], "m")
    assert commit_exc.value.orphaned_objects is True
    assert commit_exc.value.to_dict()["stage"] == "commit"


def test_batch_size_must_be_positive():
    with pytest.raises(ValueError):
        CommitBuilder(FakeRemoteClient(), blob_batch_size=0)


@pytest.mark.asyncio
async def test_ref_missing_is_not_a_rebuild(remote):
    remote.fail_on("update_ref", RemoteNotFoundError("Reference does not exist", status_code=422))

    with pytest.raises(RefUpdateFailed) as exc:
        await CommitBuilder(remote).build("main", [_change("a.md", WriteOperation.text("a.md", "x"))], "m")

    assert exc.value.reason != "conflict"
    assert exc.value.requires_rebuild is False


@pytest.mark.asyncio
async def test_delete_of_path_missing_from_head_is_dropped(remote):
    changes = [
        _change("new.md", WriteOperation.text("new.md", "draft")),
        _change("other.md", WriteOperation.text("other.md", "kept")),
        _change("new.md", DeleteOperation("new.md")),
    ]

    result = await CommitBuilder(remote).build("main", changes, "m")

    entries = remote.calls[remote.methods().index("create_tree")][1][1]
    assert [e.path for e in entries] == ["other.md"]
    assert result.file_count == 1
    assert remote.files_at("main") == {"b.md": b"old b", "keep.md": b"keep", "other.md": b"kept"}


@pytest.mark.asyncio
async def test_created_then_deleted_commits_nothing(remote):
    head = remote.refs["main"]
    changes = [
        _change("img/new.png", WriteOperation.binary("img/new.png", PNG)),
        _change("img/new.png", DeleteOperation("img/new.png")),
    ]

    result = await CommitBuilder(remote).build("main", changes, "m")

    assert result.commit_id == head
    assert result.file_count == 0
    assert result.published_change_ids == tuple(c.id for c in changes)
    assert remote.count("create_blob") == 0
    assert remote.count("create_tree") == 0
    assert remote.count("update_ref") == 0
    assert remote.refs["main"] == head


@pytest.mark.asyncio
async def test_remote_rejects_delete_of_missing_path(remote):
    base = await remote.get_commit_tree(remote.refs["main"])

    with pytest.raises(RemoteError) as exc:
        await remote.create_tree(base, [TreeEntry(path="ghost.md", mode=FILE_MODE, object_id=None)])

    assert exc.value.status_code == 422


def _instrumented_blobs(remote: FakeRemoteClient, *, fail_on: int | None = None):
    """Wrap create_blob to log start/end events keyed by the payload's last byte."""
    original = remote.create_blob
    events: list[tuple[str, int]] = []
    state = {"in_flight": 0, "peak": 0}

    async def create_blob(content, encoding):
        n = content[-1]
        events.append(("start", n))
        state["in_flight"] += 1
        state["peak"] = max(state["peak"], state["in_flight"])
        try:
            await asyncio.sleep(0)
            await asyncio.sleep(0)
            if n == fail_on:
                raise RemoteTransientError("502")
            return await original(content, encoding)
        finally:
            state["in_flight"] -= 1
            events.append(("end", n))

    remote.create_blob = create_blob
    return events, state


@pytest.mark.asyncio
async def test_blob_batches_are_bounded_and_sequential(remote):
    events, state = _instrumented_blobs(remote)
    changes = [_change(f"{n}.png", WriteOperation.binary(f"{n}.png", PNG + bytes([n]))) for n in range(7)]

    await CommitBuilder(remote, blob_batch_size=3).build("main", changes, "m")

    assert state["peak"] == 3
    for earlier, later in ((range(0, 3), range(3, 6)), (range(3, 6), range(6, 7))):
        last_end = max(events.index(("end", n)) for n in earlier)
        first_start = min(events.index(("start", n)) for n in later)
        assert last_end < first_start


@pytest.mark.asyncio
async def test_failed_batch_stops_later_batches(remote):
    events, _ = _instrumented_blobs(remote, fail_on=0)
    changes = [_change(f"{n}.png", WriteOperation.binary(f"{n}.png", PNG + bytes([n]))) for n in range(5)]

    with pytest.raises(PartialBatchError) as exc:
        await CommitBuilder(remote, blob_batch_size=2).build("main", changes, "m")

    assert exc.value.path == "0.png"
    assert exc.value.created == 1
    assert {n for kind, n in events if kind == "start"} == {0, 1}
    assert remote.count("create_tree") == 0
