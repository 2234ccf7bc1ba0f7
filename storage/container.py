"""Storage container with provider selection."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from .contracts import DraftRepo

StorageStrategy = Literal["sqlite", "memory"]


class StorageContainer:
    """Composition root for storage repos."""

    _SUPPORTED_STRATEGIES = {"sqlite", "memory"}

    def __init__(
        self,
        main_db_path: str | Path | None = None,
        strategy: StorageStrategy = "sqlite",
    ) -> None:
        if strategy not in self._SUPPORTED_STRATEGIES:
            raise ValueError(
                f"Unsupported storage strategy: {strategy}. "
                f"Supported strategies: {', '.join(sorted(self._SUPPORTED_STRATEGIES))}"
            )
        root = Path.home() / ".repopress"
        self._main_db = Path(main_db_path).expanduser() if main_db_path else root / "repopress.db"
        self._strategy: StorageStrategy = strategy

    @property
    def strategy(self) -> StorageStrategy:
        return self._strategy

    def draft_repo(self) -> DraftRepo | None:
        """Draft persistence, or None when drafts live in memory only."""
        if self._strategy == "memory":
            return None
        from storage.providers.sqlite.draft_repo import SQLiteDraftRepo

        return SQLiteDraftRepo(db_path=self._main_db)
