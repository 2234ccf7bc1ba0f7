"""Repository connection service.

One EditorSession per process lives on ``app.state.session``. Connecting a new
repository closes the previous session's client but keeps its persisted drafts,
so reconnecting later restores them.
"""

from __future__ import annotations

import logging
from typing import Any

from config.schema import EditorSettings
from drafts.errors import ValidationError
from drafts.session import EditorSession
from remote.base import RemoteContentClient
from remote.github import GitHubContentClient, parse_repo_url

logger = logging.getLogger(__name__)


def github_client_factory(settings: EditorSettings, owner: str, repo: str) -> RemoteContentClient:
    return GitHubContentClient(
        owner,
        repo,
        settings.github.token,
        api_url=settings.github.api_url,
        timeout=settings.github.request_timeout,
    )


def session_options(app: Any) -> dict[str, Any]:
    """EditorSession keyword arguments derived from the loaded settings."""
    settings: EditorSettings = app.state.settings
    return {
        "deferred": settings.publish.deferred,
        "blob_batch_size": settings.publish.blob_batch_size,
        "default_message": settings.publish.default_message,
        "draft_repo": app.state.storage.draft_repo() if settings.storage.persist_drafts else None,
        "posts_dir": settings.content.posts_dir,
        "theme_path": settings.content.theme_path,
        "site_config_path": settings.content.site_config_path,
    }


async def connect_repository(app: Any, url: str) -> EditorSession:
    parsed = parse_repo_url(url)
    if parsed is None:
        raise ValidationError("Invalid repository URL format. Use owner/repo")
    owner, name = parsed

    previous: EditorSession | None = app.state.session
    if previous is not None:
        app.state.session = None
        await previous.close()

    factory = app.state.client_factory or github_client_factory
    client = factory(app.state.settings, owner, name)
    try:
        session = await EditorSession.connect(client, **session_options(app))
    except Exception:
        await client.close()
        raise
    app.state.session = session
    return session


async def disconnect_repository(app: Any) -> bool:
    """Destroy the session with its queue and cache. False when nothing was connected."""
    session: EditorSession | None = app.state.session
    if session is None:
        return False
    app.state.session = None
    await session.disconnect()
    logger.info("Disconnected %s", session.repository.full_name)
    return True
