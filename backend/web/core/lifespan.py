"""Application lifespan management."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from backend.web.core.config import LOCAL_WORKSPACE_ROOT, REPOPRESS_HOME
from config.loader import SettingsLoader
from storage.container import StorageContainer

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """FastAPI lifespan context manager for startup and shutdown."""
    # Tests may pre-seed settings/storage before startup
    if getattr(app.state, "settings", None) is None:
        app.state.settings = SettingsLoader(workspace_root=LOCAL_WORKSPACE_ROOT, user_dir=REPOPRESS_HOME).load()
    settings = app.state.settings
    if getattr(app.state, "storage", None) is None:
        strategy = "sqlite" if settings.storage.persist_drafts else "memory"
        app.state.storage = StorageContainer(main_db_path=settings.storage.db_path, strategy=strategy)

    # One connected repository per process; None until /api/repository/connect
    app.state.session = None
    app.state.client_factory = getattr(app.state, "client_factory", None)

    try:
        yield
    finally:
        session = app.state.session
        if session is not None:
            try:
                await session.close()
            except Exception as e:
                logger.warning("Session cleanup error: %s", e)
            app.state.session = None
