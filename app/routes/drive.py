"""Routes for connecting a user's Google Drive."""
import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from app.core.container import AppContainer
from app.core.errors import NotConnected, ReauthRequired
from app.drive.client import expiry_to_datetime
from app.routes.deps import get_container, get_user_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/photos", tags=["drive"])


class DriveCallback(BaseModel):
    code: str = Field(min_length=1)


@router.post("/connect-drive")
def connect_drive(
    user_id: str = Depends(get_user_id),
    container: AppContainer = Depends(get_container),
):
    """Return the Google consent URL the client should open."""
    logger.info(f"Generating Google Drive auth URL for user {user_id}")
    return {
        "message": "Google Drive authentication URL generated",
        "auth_url": container.oauth_client.authorization_url(),
    }


@router.post("/drive-callback")
def drive_callback(
    body: DriveCallback,
    user_id: str = Depends(get_user_id),
    container: AppContainer = Depends(get_container),
):
    """
    Complete the OAuth flow.

    Exchanges the authorization code for tokens and stores them for the
    caller. A code the provider rejects is reported as a re-authorization
    error so the client restarts the flow.
    """
    try:
        bundle = container.oauth_client.exchange_code(body.code)
    except Exception as e:
        logger.error(f"Code exchange failed for user {user_id}: {e}")
        raise ReauthRequired(f"Failed to connect Google Drive: {e}") from e

    container.token_cache.save(user_id, bundle)
    return {"message": "Google Drive connected successfully", "connected": True}


@router.get("/drive-status")
def drive_status(
    user_id: str = Depends(get_user_id),
    container: AppContainer = Depends(get_container),
):
    """
    Report whether the caller has connected Drive and whether it still works.

    Stale tokens are refreshed on the way; a failed refresh is reported as
    ``valid: false`` with the reason instead of an error response.
    """
    if not container.token_cache.has_tokens(user_id):
        return {"connected": False, "valid": False}

    try:
        record = container.token_cache.get_valid(user_id)
    except ReauthRequired as e:
        return {"connected": True, "valid": False, "error": e.message}
    if record is None:
        return {"connected": False, "valid": False}

    expires_at = expiry_to_datetime(record.expiry)
    return {
        "connected": True,
        "valid": container.storage.validate_tokens(record),
        "expires_at": expires_at.isoformat() if expires_at else None,
    }


@router.post("/disconnect-drive")
def disconnect_drive(
    user_id: str = Depends(get_user_id),
    container: AppContainer = Depends(get_container),
):
    """Forget the caller's Drive tokens. Photos in Drive are left untouched."""
    container.token_cache.delete(user_id)
    return {"message": "Google Drive disconnected successfully", "connected": False}


@router.get("/drive-usage")
def drive_usage(
    user_id: str = Depends(get_user_id),
    container: AppContainer = Depends(get_container),
):
    """Storage used and available in the caller's Drive, in bytes."""
    if not container.token_cache.has_tokens(user_id):
        raise NotConnected()
    record = container.token_cache.get_valid(user_id)
    if record is None:
        raise NotConnected()
    return container.storage.storage_usage(record)
