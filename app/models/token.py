"""OAuth token model for per-user Google Drive access.

This module defines the DriveToken model which stores the OAuth2
credentials each user granted when connecting their Google Drive. There is
at most one row per user; refreshes mutate it in place.
"""

from datetime import UTC, datetime
from uuid import UUID, uuid4

from sqlalchemy import BigInteger
from sqlmodel import Field, SQLModel


class DriveToken(SQLModel, table=True):
    """Stored OAuth2 credentials for one user's Google Drive.

    Attributes:
        id: Unique identifier (UUID).
        user_id: Identity-provider user id (unique).
        access_token: Short-lived token for API requests.
        refresh_token: Long-lived token used to obtain new access tokens.
            Refresh responses usually omit it, so it is only ever replaced,
            never cleared, by a save.
        token_type: Authorization scheme, normally "Bearer".
        expiry: Access token expiry as epoch milliseconds.
        scope: Space-separated list of granted OAuth scopes.
    """
    __tablename__ = "google_drive_tokens"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: str = Field(index=True, unique=True, max_length=255)
    access_token: str
    refresh_token: str | None = None
    token_type: str = Field(default="Bearer", max_length=50)
    expiry: int | None = Field(default=None, sa_type=BigInteger)
    scope: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
