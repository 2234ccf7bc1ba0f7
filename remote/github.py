"""
GitHubContentClient — RemoteContentClient over the GitHub REST API.

Uses the git data endpoints (blobs, trees, commits, refs) for writing and the
contents endpoint for reading single files. One ``httpx.AsyncClient`` per
repository; every request carries the configured timeout.
"""

from __future__ import annotations

import base64
import logging
import re
from typing import Any
from urllib.parse import quote

import httpx

from drafts.errors import (
    RemoteConflictError,
    RemoteError,
    RemoteNotFoundError,
    RemotePermissionError,
    RemoteTransientError,
)
from remote.base import BranchInfo, RefUpdateResult, RemoteContentClient, RepositoryInfo, TreeEntry, TreeItem

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"
BRANCH_PAGE_SIZE = 100

_FULL_URL_RE = re.compile(r"github\.com[/:]([^/]+)/([^/.]+)")
_SHORT_RE = re.compile(r"^([^/\s]+)/([^/\s]+)$")


def parse_repo_url(url: str) -> tuple[str, str] | None:
    """Parse ``owner/repo`` or a GitHub URL into (owner, repo)."""
    url = (url or "").strip()
    match = _FULL_URL_RE.search(url)
    if match:
        return match.group(1), match.group(2)
    match = _SHORT_RE.match(url)
    if match:
        return match.group(1), match.group(2)
    return None


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text[:500] or response.reason_phrase
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    return response.reason_phrase


def raise_for_response(response: httpx.Response, action: str) -> None:
    """Translate a GitHub error response into a RemoteError subclass."""
    status = response.status_code
    if status < 400:
        return
    message = f"{action}: HTTP {status}: {_error_message(response)}"
    if status == 401:
        raise RemotePermissionError(message, status_code=status)
    if status == 403:
        # @@@rate-limit - GitHub reports primary rate limiting as 403 with remaining=0.
        if response.headers.get("x-ratelimit-remaining") == "0":
            raise RemoteTransientError(message, status_code=status)
        raise RemotePermissionError(message, status_code=status)
    if status == 404:
        raise RemoteNotFoundError(message, status_code=status)
    if status in (409, 422):
        raise RemoteConflictError(message, status_code=status)
    if status == 429 or status >= 500:
        raise RemoteTransientError(message, status_code=status)
    raise RemoteError(message, status_code=status)


class GitHubContentClient(RemoteContentClient):
    """RemoteContentClient bound to one GitHub repository."""

    name = "github"

    def __init__(
        self,
        owner: str,
        repo: str,
        token: str | None,
        *,
        api_url: str = DEFAULT_API_URL,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.owner = owner
        self.repo = repo
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=api_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    @property
    def _prefix(self) -> str:
        return f"/repos/{self.owner}/{self.repo}"

    async def _request(self, method: str, url: str, action: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            raise RemoteTransientError(f"{action}: timed out") from e
        except httpx.TransportError as e:
            raise RemoteTransientError(f"{action}: {e}") from e
        raise_for_response(response, action)
        return response

    # ==================== Refs and commits ====================

    async def get_ref(self, branch: str) -> str:
        r = await self._request("GET", f"{self._prefix}/git/ref/heads/{quote(branch, safe='/')}", f"get ref {branch}")
        return r.json()["object"]["sha"]

    async def get_commit_tree(self, commit_id: str) -> str:
        r = await self._request("GET", f"{self._prefix}/git/commits/{commit_id}", f"get commit {commit_id}")
        return r.json()["tree"]["sha"]

    async def update_ref(self, branch: str, commit_id: str) -> RefUpdateResult:
        try:
            await self._request(
                "PATCH",
                f"{self._prefix}/git/refs/heads/{quote(branch, safe='/')}",
                f"update ref {branch}",
                json={"sha": commit_id, "force": False},
            )
        except RemoteConflictError as e:
            # 422 is also the answer for a branch deleted since its head was read
            if "Reference does not exist" in str(e):
                raise RemoteNotFoundError(str(e), status_code=e.status_code) from e
            logger.info("Ref %s moved concurrently: %s", branch, e)
            return RefUpdateResult.CONFLICT
        return RefUpdateResult.SUCCESS

    async def create_commit(self, tree_id: str, parent_commit_id: str, message: str) -> str:
        r = await self._request(
            "POST",
            f"{self._prefix}/git/commits",
            "create commit",
            json={"message": message, "tree": tree_id, "parents": [parent_commit_id]},
        )
        return r.json()["sha"]

    # ==================== Objects ====================

    async def create_blob(self, content: bytes, encoding: str) -> str:
        if encoding == "base64":
            payload = {"content": base64.b64encode(content).decode("ascii"), "encoding": "base64"}
        else:
            payload = {"content": content.decode("utf-8"), "encoding": "utf-8"}
        r = await self._request("POST", f"{self._prefix}/git/blobs", "create blob", json=payload)
        return r.json()["sha"]

    async def create_tree(self, base_tree_id: str, entries: list[TreeEntry]) -> str:
        tree: list[dict[str, Any]] = []
        for entry in entries:
            item: dict[str, Any] = {"path": entry.path, "mode": entry.mode, "type": "blob"}
            if entry.content is not None:
                item["content"] = entry.content
            else:
                # sha=None removes the path from base_tree
                item["sha"] = entry.object_id
            tree.append(item)
        r = await self._request(
            "POST",
            f"{self._prefix}/git/trees",
            "create tree",
            json={"base_tree": base_tree_id, "tree": tree},
        )
        return r.json()["sha"]

    # ==================== Reading ====================

    async def get_file_content(self, path: str, ref: str) -> bytes | None:
        try:
            r = await self._request(
                "GET",
                f"{self._prefix}/contents/{quote(path, safe='/')}",
                f"get content {path}",
                params={"ref": ref},
            )
        except RemoteNotFoundError:
            return None
        data = r.json()
        if isinstance(data, list) or data.get("type") != "file":
            return None
        if data.get("encoding") == "base64" and data.get("content") is not None:
            return base64.b64decode(data["content"])
        # Files over 1 MB come back without inline content.
        blob = await self._request("GET", f"{self._prefix}/git/blobs/{data['sha']}", f"get blob {path}")
        return base64.b64decode(blob.json()["content"])

    async def list_tree(self, ref: str, recursive: bool = True) -> list[TreeItem]:
        params = {"recursive": "1"} if recursive else None
        r = await self._request(
            "GET", f"{self._prefix}/git/trees/{quote(ref, safe='/')}", f"list tree {ref}", params=params
        )
        data = r.json()
        if data.get("truncated"):
            logger.warning("Tree listing for %s/%s@%s was truncated", self.owner, self.repo, ref)
        return [
            TreeItem(path=item["path"], type=item["type"], size=item.get("size"))
            for item in data.get("tree", [])
            if item.get("path") and item.get("type")
        ]

    # ==================== Repository ====================

    async def get_repository(self) -> RepositoryInfo:
        r = await self._request("GET", self._prefix, f"get repository {self.owner}/{self.repo}")
        data = r.json()
        return RepositoryInfo(
            id=str(data["id"]),
            owner=self.owner,
            name=self.repo,
            full_name=data.get("full_name") or f"{self.owner}/{self.repo}",
            default_branch=data.get("default_branch") or "main",
        )

    async def list_branches(self) -> list[BranchInfo]:
        branches: list[BranchInfo] = []
        page = 1
        while True:
            r = await self._request(
                "GET",
                f"{self._prefix}/branches",
                "list branches",
                params={"per_page": BRANCH_PAGE_SIZE, "page": page},
            )
            batch = r.json()
            branches.extend(BranchInfo(name=b["name"], last_commit=b["commit"]["sha"]) for b in batch)
            if len(batch) < BRANCH_PAGE_SIZE:
                return branches
            page += 1

    async def create_branch(self, name: str, from_commit_id: str) -> None:
        await self._request(
            "POST",
            f"{self._prefix}/git/refs",
            f"create branch {name}",
            json={"ref": f"refs/heads/{name}", "sha": from_commit_id},
        )

    async def close(self) -> None:
        await self._client.aclose()
