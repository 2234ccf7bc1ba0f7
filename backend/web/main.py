"""repopress Web Backend - FastAPI Application."""

import os

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend.web.core.config import DEFAULT_PORT
from backend.web.core.lifespan import lifespan
from backend.web.routers import drafts, files, images, posts, repository, site

# Create FastAPI app
app = FastAPI(title="repopress Web Backend", lifespan=lifespan)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(repository.router)
app.include_router(posts.router)
app.include_router(files.router)
app.include_router(images.router)
app.include_router(site.router)
app.include_router(drafts.router)


def _resolve_port() -> int:
    """Resolve backend port: REPOPRESS_PORT > PORT > default 8001."""
    port = os.environ.get("REPOPRESS_PORT") or os.environ.get("PORT")
    if port:
        return int(port)
    return DEFAULT_PORT


if __name__ == "__main__":
    port = _resolve_port()
    # @@@module-launch-target - Package-qualified target keeps module launch (`python -m backend.web.main`) import-safe.
    uvicorn.run("backend.web.main:app", host="0.0.0.0", port=port, reload=True)
