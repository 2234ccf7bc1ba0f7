from .base import BranchInfo, RefUpdateResult, RemoteContentClient, RepositoryInfo, TreeEntry, TreeItem
from .github import GitHubContentClient, parse_repo_url

__all__ = [
    "BranchInfo",
    "GitHubContentClient",
    "RefUpdateResult",
    "RemoteContentClient",
    "RepositoryInfo",
    "TreeEntry",
    "TreeItem",
    "parse_repo_url",
]
