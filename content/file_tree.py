"""Nested file tree view built from a flat tree listing."""

from __future__ import annotations

from typing import Any

from remote.base import TreeItem


def build_file_tree(items: list[TreeItem]) -> list[dict[str, Any]]:
    """Nest ``items`` by path segment; directories first, then by name."""
    root: dict[str, dict[str, Any]] = {}

    for item in items:
        parts = item.path.split("/")
        level = root
        for idx, name in enumerate(parts):
            is_last = idx == len(parts) - 1
            node = level.get(name)
            if node is None:
                is_dir = not is_last or item.type == "tree"
                node = {
                    "name": name,
                    "path": "/".join(parts[: idx + 1]),
                    "type": "dir" if is_dir else "file",
                    "children": {} if is_dir else None,
                }
                level[name] = node
            elif not is_last and node["children"] is None:
                node["type"] = "dir"
                node["children"] = {}
            if node["children"] is None:
                break
            level = node["children"]

    return _sorted(root)


def _sorted(level: dict[str, dict[str, Any]]) -> list[dict[str, Any]]:
    nodes = sorted(level.values(), key=lambda n: (n["type"] != "dir", n["name"].lower()))
    result: list[dict[str, Any]] = []
    for node in nodes:
        entry = {"name": node["name"], "path": node["path"], "type": node["type"]}
        if node["children"] is not None:
            entry["children"] = _sorted(node["children"])
        result.append(entry)
    return result
