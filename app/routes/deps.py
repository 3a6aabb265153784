"""Shared route dependencies."""
from fastapi import Header, HTTPException, Request

from app.core.container import AppContainer


def get_container(request: Request) -> AppContainer:
    return request.app.state.container


def get_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """Caller identity, already authenticated by the gateway in front of the app."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Missing user identity")
    return x_user_id.strip()
