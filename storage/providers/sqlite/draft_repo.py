"""SQLite repository for draft_changes persistence."""

from __future__ import annotations

import json
import sqlite3
import threading
from pathlib import Path

from drafts.models import DraftChange
from storage.models import DraftChangeRow, encode_operations, row_to_change

DEFAULT_DB_PATH = Path.home() / ".repopress" / "repopress.db"


class SQLiteDraftRepo:
    """Repository boundary for draft_changes table."""

    def __init__(self, db_path: Path | str | None = None) -> None:
        self.db_path = Path(db_path) if db_path else DEFAULT_DB_PATH
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._ensure_table()

    def save(self, repository_id: str, branch: str, change: DraftChange) -> None:
        with self._lock, sqlite3.connect(self.db_path) as conn:
            # @@@replace-by-primary-path - mirrors the in-memory queue: same primary path replaces, moves to end.
            conn.execute(
                "DELETE FROM draft_changes WHERE repository_id = ? AND branch = ? AND (primary_path = ? OR id = ?)",
                (repository_id, branch, change.primary_path, change.id),
            )
            row = conn.execute(
                "SELECT COALESCE(MAX(seq), 0) FROM draft_changes WHERE repository_id = ? AND branch = ?",
                (repository_id, branch),
            ).fetchone()
            conn.execute(
                """
                INSERT INTO draft_changes
                (id, repository_id, branch, seq, kind, title, primary_path,
                 operations, metadata, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    change.id,
                    repository_id,
                    branch,
                    int(row[0]) + 1,
                    change.kind,
                    change.title,
                    change.primary_path,
                    encode_operations(change.operations),
                    json.dumps(change.metadata),
                    change.created_at,
                ),
            )
            conn.commit()

    def delete(self, repository_id: str, branch: str, change_id: str) -> bool:
        with self._lock, sqlite3.connect(self.db_path) as conn:
            cursor = conn.execute(
                "DELETE FROM draft_changes WHERE repository_id = ? AND branch = ? AND id = ?",
                (repository_id, branch, change_id),
            )
            conn.commit()
            return cursor.rowcount > 0

    def clear(self, repository_id: str, branch: str) -> int:
        with self._lock, sqlite3.connect(self.db_path) as conn:
            cursor = conn.execute(
                "DELETE FROM draft_changes WHERE repository_id = ? AND branch = ?",
                (repository_id, branch),
            )
            conn.commit()
            return int(cursor.rowcount)

    def load(self, repository_id: str, branch: str) -> list[DraftChange]:
        with sqlite3.connect(self.db_path) as conn:
            conn.row_factory = sqlite3.Row
            rows = conn.execute(
                """
                SELECT * FROM draft_changes
                WHERE repository_id = ? AND branch = ?
                ORDER BY seq ASC
                """,
                (repository_id, branch),
            ).fetchall()
        return [row_to_change(self._to_row(row)) for row in rows]

    def close(self) -> None:
        """Compatibility no-op for protocol parity."""
        return None

    def _ensure_table(self) -> None:
        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS draft_changes (
                    id TEXT PRIMARY KEY,
                    repository_id TEXT NOT NULL,
                    branch TEXT NOT NULL,
                    seq INTEGER NOT NULL,
                    kind TEXT NOT NULL,
                    title TEXT NOT NULL,
                    primary_path TEXT NOT NULL,
                    operations TEXT NOT NULL,
                    metadata TEXT,
                    created_at REAL NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_draft_changes_scope
                ON draft_changes(repository_id, branch, seq)
                """
            )
            conn.commit()

    @staticmethod
    def _to_row(row: sqlite3.Row) -> DraftChangeRow:
        return DraftChangeRow(
            id=row["id"],
            repository_id=row["repository_id"],
            branch=row["branch"],
            seq=row["seq"],
            kind=row["kind"],
            title=row["title"],
            primary_path=row["primary_path"],
            operations=row["operations"],
            metadata=row["metadata"],
            created_at=row["created_at"],
        )
