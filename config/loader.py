"""Settings loader.

Configuration priority (highest to lowest):
1. Explicit overrides (CLI / tests)
2. Environment (GITHUB_TOKEN, REPOPRESS_*)
3. Project config (.repopress/settings.json in workspace)
4. User config (~/.repopress/settings.json)
5. System defaults (config/defaults/settings.json)
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from config.schema import EditorSettings

logger = logging.getLogger(__name__)

# env var -> (section, key)
_ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "GITHUB_TOKEN": ("github", "token"),
    "REPOPRESS_GITHUB_API_URL": ("github", "api_url"),
    "REPOPRESS_REQUEST_TIMEOUT": ("github", "request_timeout"),
    "REPOPRESS_DEFERRED": ("publish", "deferred"),
    "REPOPRESS_BLOB_BATCH_SIZE": ("publish", "blob_batch_size"),
    "REPOPRESS_DB_PATH": ("storage", "db_path"),
    "REPOPRESS_PERSIST_DRAFTS": ("storage", "persist_drafts"),
}


class SettingsLoader:
    """Three-tier settings merge plus environment overrides."""

    def __init__(
        self,
        workspace_root: str | Path | None = None,
        *,
        user_dir: str | Path | None = None,
        env: Mapping[str, str] | None = None,
    ):
        self.workspace_root = Path(workspace_root).resolve() if workspace_root else None
        self.user_dir = Path(user_dir) if user_dir else Path.home() / ".repopress"
        self._env = env if env is not None else os.environ
        self._system_defaults_dir = Path(__file__).parent / "defaults"

    def load(self, overrides: dict[str, Any] | None = None) -> EditorSettings:
        merged = self._deep_merge(
            self._load_system_defaults(),
            self._load_user_config(),
            self._load_project_config(),
            self._env_overrides(),
        )
        if overrides:
            merged = self._deep_merge(merged, overrides)
        merged = self._expand_env_vars(merged)
        return EditorSettings(**self._remove_none_values(merged))

    # ── Internal helpers ──

    def _load_system_defaults(self) -> dict[str, Any]:
        return self._load_json(self._system_defaults_dir / "settings.json")

    def _load_user_config(self) -> dict[str, Any]:
        return self._load_json(self.user_dir / "settings.json")

    def _load_project_config(self) -> dict[str, Any]:
        if not self.workspace_root:
            return {}
        return self._load_json(self.workspace_root / ".repopress" / "settings.json")

    def _env_overrides(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for name, (section, key) in _ENV_OVERRIDES.items():
            value = self._env.get(name)
            if value is None or value == "":
                continue
            result.setdefault(section, {})[key] = value
        return result

    @staticmethod
    def _load_json(path: Path) -> dict[str, Any]:
        if not path.exists():
            return {}
        try:
            with open(path, encoding="utf-8") as f:
                return json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Ignoring unreadable settings file %s: %s", path, e)
            return {}

    def _deep_merge(self, *dicts: dict[str, Any]) -> dict[str, Any]:
        """Deep merge multiple dictionaries. Later dicts override earlier ones."""
        result: dict[str, Any] = {}
        for d in dicts:
            for key, value in d.items():
                if key not in result:
                    result[key] = value
                elif value is None:
                    continue
                elif isinstance(value, dict) and isinstance(result[key], dict):
                    result[key] = self._deep_merge(result[key], value)
                else:
                    result[key] = value
        return result

    def _expand_env_vars(self, obj: Any) -> Any:
        """Recursively expand ${VAR} and ~ in string values."""
        if isinstance(obj, dict):
            return {k: self._expand_env_vars(v) for k, v in obj.items()}
        if isinstance(obj, list):
            return [self._expand_env_vars(v) for v in obj]
        if isinstance(obj, str):
            return os.path.expandvars(os.path.expanduser(obj))
        return obj

    def _remove_none_values(self, obj: Any) -> Any:
        """Recursively remove None values to allow Pydantic defaults."""
        if isinstance(obj, dict):
            return {k: self._remove_none_values(v) for k, v in obj.items() if v is not None}
        if isinstance(obj, list):
            return [self._remove_none_values(v) for v in obj if v is not None]
        return obj


def load_settings(
    workspace_root: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> EditorSettings:
    """Convenience function to load settings."""
    return SettingsLoader(workspace_root=workspace_root).load(overrides=overrides)
