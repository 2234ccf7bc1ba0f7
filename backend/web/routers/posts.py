"""Blog post endpoints.

Writes are routed through the session: committed immediately or staged in the
draft queue depending on ``queue_only`` and the deferred-publish setting.
"""

from typing import Annotated, Any

from fastapi import APIRouter, Depends

from backend.web.core.dependencies import envelope, get_app, get_session, http_error
from backend.web.models.requests import DeletePostRequest, PostRequest
from backend.web.services import content_service
from content.posts import PostFields
from drafts.errors import EditorError, NotFoundError
from drafts.models import WriteOperation
from drafts.session import EditorSession

router = APIRouter(prefix="/api/posts", tags=["posts"])


def _fields(payload: PostRequest) -> PostFields:
    return PostFields(**payload.model_dump(include=set(PostFields.model_fields)))


def _images(app: Any, payload: PostRequest) -> tuple[WriteOperation, ...]:
    images_dir = app.state.settings.content.images_dir
    return tuple(content_service.image_operation(images_dir, i.filename, i.content) for i in payload.images)


@router.get("")
async def list_posts(session: Annotated[EditorSession, Depends(get_session)] = None) -> dict[str, Any]:
    posts = sorted(session.cache.posts(), key=lambda p: p.pub_date, reverse=True)
    return envelope([p.model_dump() for p in posts])


@router.get("/{slug}")
async def get_post(slug: str, session: Annotated[EditorSession, Depends(get_session)] = None) -> dict[str, Any]:
    post = session.cache.get_post(slug)
    if post is None:
        raise http_error(NotFoundError(f"Post not found: {slug}"))
    return envelope(post.model_dump())


@router.post("")
async def create_post(
    payload: PostRequest,
    session: Annotated[EditorSession, Depends(get_session)] = None,
    app: Annotated[Any, Depends(get_app)] = None,
) -> dict[str, Any]:
    try:
        intent = content_service.create_post_intent(
            session,
            app.state.settings.content.posts_dir,
            _fields(payload),
            payload.slug,
            payload.commit_message,
            _images(app, payload),
        )
        outcome = await session.apply_edit(intent, queue_only=payload.queue_only)
    except EditorError as e:
        raise http_error(e) from e
    post = session.cache.get_post(intent.metadata["slug"])
    return envelope({**outcome.to_dict(), "post": post.model_dump() if post else None})


@router.put("/{slug}")
async def update_post(
    slug: str,
    payload: PostRequest,
    session: Annotated[EditorSession, Depends(get_session)] = None,
    app: Annotated[Any, Depends(get_app)] = None,
) -> dict[str, Any]:
    try:
        intent = content_service.update_post_intent(
            session, slug, _fields(payload), payload.commit_message, _images(app, payload)
        )
        outcome = await session.apply_edit(intent, queue_only=payload.queue_only)
    except EditorError as e:
        raise http_error(e) from e
    post = session.cache.get_post(slug)
    return envelope({**outcome.to_dict(), "post": post.model_dump() if post else None})


@router.delete("/{slug}")
async def delete_post(
    slug: str,
    payload: DeletePostRequest | None = None,
    session: Annotated[EditorSession, Depends(get_session)] = None,
) -> dict[str, Any]:
    options = payload or DeletePostRequest()
    try:
        intent = content_service.delete_post_intent(session, slug, options.commit_message)
        outcome = await session.apply_edit(intent, queue_only=options.queue_only)
    except EditorError as e:
        raise http_error(e) from e
    return envelope(outcome.to_dict())
