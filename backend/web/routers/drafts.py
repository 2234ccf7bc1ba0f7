"""Draft queue endpoints: inspect, unstage, toggle deferred mode, publish."""

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends

from backend.web.core.dependencies import envelope, get_session, http_error
from backend.web.models.requests import ModeRequest, PublishRequest
from drafts.errors import EditorError
from drafts.session import EditorSession

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/drafts", tags=["drafts"])


@router.get("")
async def get_drafts(session: Annotated[EditorSession, Depends(get_session)] = None) -> dict[str, Any]:
    return envelope(session.status())


@router.delete("")
async def clear_drafts(session: Annotated[EditorSession, Depends(get_session)] = None) -> dict[str, Any]:
    try:
        count = await session.clear_all()
    except EditorError as e:
        raise http_error(e) from e
    return envelope({"cleared": count})


@router.get("/mode")
async def get_mode(session: Annotated[EditorSession, Depends(get_session)] = None) -> dict[str, Any]:
    return envelope({"deferred": session.deferred})


@router.put("/mode")
async def set_mode(
    payload: ModeRequest,
    session: Annotated[EditorSession, Depends(get_session)] = None,
) -> dict[str, Any]:
    # Turning deferred mode off leaves already staged changes queued until publish
    session.deferred = payload.deferred
    return envelope({"deferred": session.deferred, "staged": len(session.queue)})


@router.post("/publish")
async def publish(
    payload: PublishRequest | None = None,
    session: Annotated[EditorSession, Depends(get_session)] = None,
) -> dict[str, Any]:
    message = payload.message if payload else None
    try:
        result = await session.publish(message)
    except EditorError as e:
        logger.warning("Publish to %s failed: %s", session.branch, e)
        raise http_error(e) from e
    return envelope(
        {
            "commit_id": result.commit_id,
            "file_count": result.file_count,
            "branch": result.branch,
            "published_change_ids": list(result.published_change_ids),
            "remaining": len(session.queue),
        }
    )


@router.delete("/{change_id}")
async def remove_draft(
    change_id: str,
    session: Annotated[EditorSession, Depends(get_session)] = None,
) -> dict[str, Any]:
    try:
        change = await session.remove(change_id)
    except EditorError as e:
        raise http_error(e) from e
    return envelope(change.to_summary())
