"""Core configuration schema for repopress using Pydantic.

This module defines the complete configuration structure with:
- Nested config groups (GitHub, Publish, Content, Storage)
- Field validators for URLs and repository paths
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field, field_validator

DEFAULT_DB_PATH = Path.home() / ".repopress" / "repopress.db"

# ============================================================================
# Remote repository access
# ============================================================================


class GitHubConfig(BaseModel):
    """GitHub API access."""

    token: str | None = Field(None, description="Personal access token (falls back to GITHUB_TOKEN)")
    api_url: str = Field("https://api.github.com", description="REST API base URL")
    request_timeout: float = Field(15.0, gt=0, description="Per-request timeout in seconds")

    @field_validator("api_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("token")
    @classmethod
    def empty_token_is_none(cls, v: str | None) -> str | None:
        if v is None or not v.strip():
            return None
        return v.strip()


# ============================================================================
# Publishing
# ============================================================================


class PublishConfig(BaseModel):
    """Draft queue and commit settings."""

    deferred: bool = Field(False, description="Stage every edit until an explicit publish")
    blob_batch_size: int = Field(5, gt=0, description="Concurrent blob uploads per batch")
    default_message: str = Field("Publish {count} change(s)", description="Commit message when none is given")


# ============================================================================
# Content layout inside the repository
# ============================================================================


class ContentConfig(BaseModel):
    """Where posts, images and config files live in the repository."""

    posts_dir: str = Field("src/content/blog", description="Markdown posts directory")
    images_dir: str = Field("public/images", description="Uploaded images directory")
    theme_path: str = Field("src/config/theme.json", description="Theme settings file")
    site_config_path: str = Field("src/config/site.json", description="Site config file")

    @field_validator("posts_dir", "images_dir", "theme_path", "site_config_path")
    @classmethod
    def repo_relative(cls, v: str) -> str:
        cleaned = v.strip().strip("/")
        if not cleaned or ".." in cleaned.split("/"):
            raise ValueError(f"Invalid repository path: {v!r}")
        return cleaned


# ============================================================================
# Local persistence
# ============================================================================


class StorageConfig(BaseModel):
    db_path: Path = Field(DEFAULT_DB_PATH, description="SQLite database for staged drafts")
    persist_drafts: bool = Field(True, description="Keep staged drafts across restarts")

    @field_validator("db_path")
    @classmethod
    def expand_path(cls, v: Path) -> Path:
        return Path(v).expanduser()


# ============================================================================
# Root
# ============================================================================


class EditorSettings(BaseModel):
    """Complete repopress configuration."""

    github: GitHubConfig = Field(default_factory=GitHubConfig)
    publish: PublishConfig = Field(default_factory=PublishConfig)
    content: ContentConfig = Field(default_factory=ContentConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
