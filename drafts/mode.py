"""Mode selection: commit an edit now or stage it for a later publish."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from drafts.models import DraftChange, Operation, PublishResult


class EditMode(str, Enum):
    STAGE = "stage"
    COMMIT = "commit"


def decide(queue_only: bool, deferred: bool) -> EditMode:
    """Stage when the request asks for it or deferred publishing is on."""
    if queue_only or deferred:
        return EditMode.STAGE
    return EditMode.COMMIT


@dataclass(frozen=True)
class EditIntent:
    """A validated edit request, before the mode is chosen."""

    kind: str
    title: str
    primary_path: str
    operations: tuple[Operation, ...]
    metadata: dict[str, Any] = field(default_factory=dict)
    commit_message: str | None = None

    def to_change(self) -> DraftChange:
        return DraftChange(
            kind=self.kind,
            title=self.title,
            primary_path=self.primary_path,
            operations=self.operations,
            metadata=dict(self.metadata),
        )


@dataclass(frozen=True)
class EditOutcome:
    mode: EditMode
    change: DraftChange
    replaced_change_id: str | None = None
    commit: PublishResult | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "mode": self.mode.value,
            "change": self.change.to_summary(),
        }
        if self.mode is EditMode.STAGE:
            data["replaced_change_id"] = self.replaced_change_id
        if self.commit is not None:
            data["commit_id"] = self.commit.commit_id
            data["file_count"] = self.commit.file_count
        return data
