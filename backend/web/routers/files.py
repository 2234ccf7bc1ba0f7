"""Repository file browsing and raw file edit endpoints."""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query

from backend.web.core.dependencies import envelope, get_session, http_error
from backend.web.models.requests import FileWriteRequest
from backend.web.services import content_service
from content.file_tree import build_file_tree
from drafts.errors import EditorError
from drafts.session import EditorSession

router = APIRouter(prefix="/api/files", tags=["files"])


@router.get("")
async def list_files(session: Annotated[EditorSession, Depends(get_session)] = None) -> dict[str, Any]:
    return envelope(build_file_tree(session.cache.listing()))


@router.get("/content")
async def get_file_content(
    path: str = Query(...),
    session: Annotated[EditorSession, Depends(get_session)] = None,
) -> dict[str, Any]:
    try:
        return envelope(await content_service.read_file(session, path))
    except EditorError as e:
        raise http_error(e) from e


@router.put("/content")
async def write_file_content(
    payload: FileWriteRequest,
    session: Annotated[EditorSession, Depends(get_session)] = None,
) -> dict[str, Any]:
    try:
        intent = content_service.write_file_intent(payload.path, payload.content, payload.encoding, payload.commit_message)
        outcome = await session.apply_edit(intent, queue_only=payload.queue_only)
    except EditorError as e:
        raise http_error(e) from e
    return envelope(outcome.to_dict())


@router.delete("/content")
async def delete_file(
    path: str = Query(...),
    queue_only: bool = Query(default=False),
    commit_message: str | None = Query(default=None),
    session: Annotated[EditorSession, Depends(get_session)] = None,
) -> dict[str, Any]:
    try:
        intent = content_service.delete_file_intent(session, path, commit_message)
        outcome = await session.apply_edit(intent, queue_only=queue_only)
    except EditorError as e:
        raise http_error(e) from e
    return envelope(outcome.to_dict())
