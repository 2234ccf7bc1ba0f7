"""Shared storage domain models — provider-neutral data types."""

from __future__ import annotations

import base64
import json
from dataclasses import dataclass
from typing import Any

from drafts.models import DeleteOperation, DraftChange, Operation, WriteOperation


@dataclass
class DraftChangeRow:
    id: str
    repository_id: str
    branch: str
    seq: int
    kind: str
    title: str
    primary_path: str
    operations: str
    metadata: str
    created_at: float


def encode_operations(operations: tuple[Operation, ...]) -> str:
    payload: list[dict[str, Any]] = []
    for op in operations:
        if isinstance(op, WriteOperation):
            payload.append(
                {
                    "kind": "write",
                    "path": op.path,
                    "encoding": op.encoding,
                    # stored as base64 regardless of encoding so binary survives JSON
                    "content": base64.b64encode(op.content).decode("ascii"),
                }
            )
        else:
            payload.append({"kind": "delete", "path": op.path})
    return json.dumps(payload)


def decode_operations(raw: str) -> tuple[Operation, ...]:
    ops: list[Operation] = []
    for item in json.loads(raw):
        if item["kind"] == "write":
            ops.append(
                WriteOperation(
                    path=item["path"],
                    content=base64.b64decode(item["content"]),
                    encoding=item["encoding"],
                )
            )
        else:
            ops.append(DeleteOperation(path=item["path"]))
    return tuple(ops)


def row_to_change(row: DraftChangeRow) -> DraftChange:
    return DraftChange(
        id=row.id,
        kind=row.kind,
        title=row.title,
        primary_path=row.primary_path,
        operations=decode_operations(row.operations),
        metadata=json.loads(row.metadata) if row.metadata else {},
        created_at=row.created_at,
    )
