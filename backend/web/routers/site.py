"""Theme and site configuration endpoints."""

from typing import Annotated, Any

from fastapi import APIRouter, Depends
from pydantic import ValidationError as PydanticValidationError

from backend.web.core.dependencies import envelope, get_app, get_session, http_error
from backend.web.models.requests import SiteConfigRequest, ThemeRequest
from backend.web.services import content_service
from content.site import SiteConfig, ThemeSettings
from drafts.errors import EditorError, ValidationError
from drafts.session import EditorSession

router = APIRouter(prefix="/api", tags=["site"])


@router.get("/theme")
async def get_theme(session: Annotated[EditorSession, Depends(get_session)] = None) -> dict[str, Any]:
    theme = session.cache.theme or ThemeSettings()
    return envelope(theme.model_dump())


@router.put("/theme")
async def update_theme(
    payload: ThemeRequest,
    session: Annotated[EditorSession, Depends(get_session)] = None,
    app: Annotated[Any, Depends(get_app)] = None,
) -> dict[str, Any]:
    try:
        theme = ThemeSettings.model_validate(payload.theme)
        intent = content_service.theme_intent(app.state.settings.content.theme_path, theme, payload.commit_message)
        outcome = await session.apply_edit(intent, queue_only=payload.queue_only)
    except PydanticValidationError as e:
        raise http_error(ValidationError(f"Invalid theme: {e}")) from e
    except EditorError as e:
        raise http_error(e) from e
    return envelope({**outcome.to_dict(), "theme": theme.model_dump()})


@router.get("/site-config")
async def get_site_config(session: Annotated[EditorSession, Depends(get_session)] = None) -> dict[str, Any]:
    config = session.cache.site_config or SiteConfig()
    return envelope(config.model_dump())


@router.put("/site-config")
async def update_site_config(
    payload: SiteConfigRequest,
    session: Annotated[EditorSession, Depends(get_session)] = None,
    app: Annotated[Any, Depends(get_app)] = None,
) -> dict[str, Any]:
    try:
        # merged over the current config so partial updates keep other keys
        current = session.cache.site_config or SiteConfig()
        config = SiteConfig.model_validate({**current.model_dump(), **payload.config})
        intent = content_service.site_config_intent(
            app.state.settings.content.site_config_path, config, payload.commit_message
        )
        outcome = await session.apply_edit(intent, queue_only=payload.queue_only)
    except PydanticValidationError as e:
        raise http_error(ValidationError(f"Invalid site config: {e}")) from e
    except EditorError as e:
        raise http_error(e) from e
    return envelope({**outcome.to_dict(), "config": config.model_dump()})
