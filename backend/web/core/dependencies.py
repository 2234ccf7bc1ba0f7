"""FastAPI dependencies and domain error mapping."""

from typing import Any

from fastapi import FastAPI, HTTPException, Request

from drafts.errors import (
    BranchChangedError,
    CommitFailure,
    EditorError,
    EmptyQueueError,
    NotConnectedError,
    NotFoundError,
    RefUpdateFailed,
    RemoteConflictError,
    RemoteError,
    RemoteNotFoundError,
    RemotePermissionError,
    RemoteTransientError,
    ValidationError,
)
from drafts.session import EditorSession


async def get_app(request: Request) -> FastAPI:
    return request.app


async def get_session(request: Request) -> EditorSession:
    session = getattr(request.app.state, "session", None)
    if session is None:
        raise http_error(NotConnectedError("No repository connected"))
    return session


def http_error(e: EditorError) -> HTTPException:
    """Map a domain error to the HTTP status the editor UI expects."""
    if isinstance(e, CommitFailure):
        if isinstance(e, EmptyQueueError):
            status = 400
        elif isinstance(e, RefUpdateFailed) and e.reason == "conflict":
            status = 409
        else:
            status = 502
        return HTTPException(status, e.to_dict())
    if isinstance(e, (ValidationError, NotConnectedError)):
        return HTTPException(400, str(e))
    if isinstance(e, (NotFoundError, RemoteNotFoundError)):
        return HTTPException(404, str(e))
    if isinstance(e, (BranchChangedError, RemoteConflictError)):
        return HTTPException(409, str(e))
    if isinstance(e, RemoteTransientError):
        return HTTPException(503, str(e))
    if isinstance(e, RemotePermissionError):
        return HTTPException(403, str(e))
    if isinstance(e, RemoteError):
        return HTTPException(502, str(e))
    return HTTPException(500, str(e))


def envelope(data: Any = None) -> dict[str, Any]:
    return {"success": True, "data": data}
