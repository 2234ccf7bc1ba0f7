"""Change record model: file operations and staged draft changes."""

from __future__ import annotations

import base64
import binascii
import posixpath
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Literal

from drafts.errors import ValidationError

Encoding = Literal["utf8", "base64"]
ENCODINGS: tuple[str, ...] = ("utf8", "base64")


def normalize_path(path: str) -> str:
    """Return a repository-relative POSIX path or raise ValidationError.

    ``/posts/a.md`` and ``posts/a.md`` name the same file.
    """
    if not isinstance(path, str) or not path.strip():
        raise ValidationError("Path is required")
    raw = path.strip().replace("\\", "/").lstrip("/")
    if not raw:
        raise ValidationError(f"Invalid path: {path!r}")
    parts = raw.split("/")
    if any(part in ("", ".", "..") for part in parts):
        raise ValidationError(f"Invalid path: {path!r}")
    return posixpath.join(*parts)


@dataclass(frozen=True)
class WriteOperation:
    """Create or replace one file.

    ``content`` always holds the raw file bytes. ``encoding`` says how the bytes
    travel to the remote: utf8 text is inlined into the tree, base64 payloads are
    uploaded as blobs first.
    """

    path: str
    content: bytes
    encoding: Encoding = "utf8"
    kind: Literal["write"] = field(default="write", init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "path", normalize_path(self.path))
        if self.encoding not in ENCODINGS:
            raise ValidationError(f"Unknown encoding: {self.encoding!r}")
        if self.content is None:
            raise ValidationError(f"Content is required for write: {self.path}")
        if isinstance(self.content, str):
            raise ValidationError(f"Content must be bytes: {self.path}")
        if self.encoding == "utf8":
            try:
                bytes(self.content).decode("utf-8")
            except UnicodeDecodeError as e:
                raise ValidationError(f"Binary content needs base64 encoding: {self.path}") from e
        object.__setattr__(self, "content", bytes(self.content))

    @classmethod
    def text(cls, path: str, text: str) -> WriteOperation:
        if text is None:
            raise ValidationError(f"Content is required for write: {path}")
        return cls(path=path, content=text.encode("utf-8"), encoding="utf8")

    @classmethod
    def binary(cls, path: str, data: bytes) -> WriteOperation:
        return cls(path=path, content=data, encoding="base64")

    @classmethod
    def from_base64(cls, path: str, payload: str) -> WriteOperation:
        """Build a binary write from a base64 string (data URLs accepted)."""
        if not payload:
            raise ValidationError(f"Content is required for write: {path}")
        if payload.startswith("data:") and "," in payload:
            payload = payload.split(",", 1)[1]
        try:
            data = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValidationError(f"Invalid base64 content for {path}") from e
        return cls.binary(path, data)

    def text_content(self) -> str | None:
        """Decoded text for utf8 writes, None for binary payloads."""
        if self.encoding != "utf8":
            return None
        return self.content.decode("utf-8")


@dataclass(frozen=True)
class DeleteOperation:
    """Remove one file relative to the base tree."""

    path: str
    kind: Literal["delete"] = field(default="delete", init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "path", normalize_path(self.path))


Operation = WriteOperation | DeleteOperation


@dataclass(frozen=True)
class DraftChange:
    """One staged edit, possibly spanning several files."""

    kind: str
    title: str
    primary_path: str
    operations: tuple[Operation, ...]
    metadata: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: float = field(default_factory=time.time)

    def __post_init__(self) -> None:
        object.__setattr__(self, "primary_path", normalize_path(self.primary_path))
        ops = tuple(self.operations or ())
        if not ops:
            raise ValidationError(f"Draft change for {self.primary_path} has no operations")
        for op in ops:
            if not isinstance(op, (WriteOperation, DeleteOperation)):
                raise ValidationError(f"Unsupported operation: {op!r}")
        object.__setattr__(self, "operations", ops)

    @property
    def paths(self) -> tuple[str, ...]:
        return tuple(op.path for op in self.operations)

    def to_summary(self) -> dict[str, Any]:
        """Display form without file payloads."""
        return {
            "id": self.id,
            "kind": self.kind,
            "title": self.title,
            "primary_path": self.primary_path,
            "operations": [
                {
                    "kind": op.kind,
                    "path": op.path,
                    **({"encoding": op.encoding, "size": len(op.content)} if isinstance(op, WriteOperation) else {}),
                }
                for op in self.operations
            ],
            "metadata": dict(self.metadata),
            "created_at": self.created_at,
        }


@dataclass(frozen=True)
class PublishResult:
    commit_id: str
    file_count: int
    branch: str
    published_change_ids: tuple[str, ...] = ()


def flatten_operations(changes: tuple[DraftChange, ...] | list[DraftChange]) -> list[Operation]:
    """Flatten changes in order, last write wins per file path.

    A path keeps the position of its first appearance; its operation is the one
    from the latest change that touched it.
    """
    by_path: dict[str, Operation] = {}
    for change in changes:
        for op in change.operations:
            by_path[op.path] = op
    return list(by_path.values())
