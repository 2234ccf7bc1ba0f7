"""Repository connection and branch (site) endpoints."""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException

from backend.web.core.dependencies import envelope, get_app, get_session, http_error
from backend.web.models.requests import ConnectRequest, CreateBranchRequest, SwitchBranchRequest
from backend.web.services.repository_service import connect_repository, disconnect_repository
from drafts.errors import EditorError, RemoteConflictError
from drafts.session import EditorSession

router = APIRouter(prefix="/api", tags=["repository"])


@router.get("/health")
async def health(app: Annotated[Any, Depends(get_app)] = None) -> dict[str, Any]:
    return {"status": "ok", "connected": app.state.session is not None}


@router.get("/repository")
async def get_repository(app: Annotated[Any, Depends(get_app)] = None) -> dict[str, Any]:
    session = app.state.session
    return envelope(session.repository.to_dict() if session else None)


@router.post("/repository/connect")
async def connect(payload: ConnectRequest, app: Annotated[Any, Depends(get_app)] = None) -> dict[str, Any]:
    try:
        session = await connect_repository(app, payload.url)
    except EditorError as e:
        raise http_error(e) from e
    return envelope(session.repository.to_dict())


@router.post("/repository/disconnect")
async def disconnect(app: Annotated[Any, Depends(get_app)] = None) -> dict[str, Any]:
    await disconnect_repository(app)
    return envelope()


@router.post("/repository/sync")
async def sync(session: Annotated[EditorSession, Depends(get_session)] = None) -> dict[str, Any]:
    try:
        await session.sync()
    except EditorError as e:
        raise http_error(e) from e
    return envelope(session.repository.to_dict())


# ==================== Branches ====================


def _branch_dict(session: EditorSession, branch: Any) -> dict[str, Any]:
    return {
        "name": branch.name,
        "last_commit": branch.last_commit,
        "is_template": branch.is_template,
        "domain": branch.domain,
        "active": branch.name == session.branch,
    }


@router.get("/branches")
async def list_branches(session: Annotated[EditorSession, Depends(get_session)] = None) -> dict[str, Any]:
    return envelope([_branch_dict(session, b) for b in session.branches])


@router.post("/branches")
async def create_branch(
    payload: CreateBranchRequest,
    session: Annotated[EditorSession, Depends(get_session)] = None,
) -> dict[str, Any]:
    try:
        branch = await session.create_site_branch(payload.domain)
    except RemoteConflictError as e:
        raise HTTPException(409, "Branch already exists") from e
    except EditorError as e:
        raise http_error(e) from e
    return envelope(_branch_dict(session, branch))


@router.post("/branches/switch")
async def switch_branch(
    payload: SwitchBranchRequest,
    session: Annotated[EditorSession, Depends(get_session)] = None,
) -> dict[str, Any]:
    try:
        await session.switch_branch(payload.branch)
    except EditorError as e:
        raise http_error(e) from e
    return envelope({"active_branch": session.branch})
