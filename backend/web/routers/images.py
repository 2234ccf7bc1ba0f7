"""Image upload endpoint. Images land under ``content.images_dir``."""

from typing import Annotated, Any

from fastapi import APIRouter, Depends

from backend.web.core.dependencies import envelope, get_app, get_session, http_error
from backend.web.models.requests import ImageRequest
from backend.web.services import content_service
from drafts.errors import EditorError
from drafts.session import EditorSession

router = APIRouter(prefix="/api/images", tags=["images"])


@router.post("")
async def upload_image(
    payload: ImageRequest,
    session: Annotated[EditorSession, Depends(get_session)] = None,
    app: Annotated[Any, Depends(get_app)] = None,
) -> dict[str, Any]:
    try:
        intent = content_service.upload_image_intent(
            app.state.settings.content.images_dir, payload.filename, payload.content, payload.commit_message
        )
        outcome = await session.apply_edit(intent, queue_only=payload.queue_only)
    except EditorError as e:
        raise http_error(e) from e
    return envelope({**outcome.to_dict(), "path": intent.primary_path, "url": intent.metadata["url"]})
