"""Per-user Google Drive token cache.

Tokens are persisted in the ``google_drive_tokens`` table, one row per
user. ``TokenCache.get_valid`` refreshes the access token transparently
when it is about to expire and writes the new value back.
"""
import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from typing import Any, Protocol

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, col, select

from app.core.database import transaction
from app.core.errors import PersistenceError, ReauthRequired, TokenRefreshFailed
from app.models import DriveToken

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_WINDOW_MS = 5 * 60 * 1000


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class TokenBundle:
    """OAuth tokens as returned by the provider's token endpoint."""

    access_token: str
    refresh_token: str | None = None
    expiry: int | None = None  # epoch milliseconds
    scope: str | None = None
    token_type: str = "Bearer"

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "TokenBundle":
        """Validate a provider token payload.

        Accepts both ``expiry`` and the provider's ``expiry_date`` key.
        Raises ValueError when the payload has no usable access token.
        """
        access_token = data.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise ValueError("Token payload has no access_token")

        expiry = data.get("expiry", data.get("expiry_date"))
        if expiry is not None:
            try:
                expiry = int(expiry)
            except (TypeError, ValueError) as e:
                raise ValueError(f"Invalid token expiry: {expiry!r}") from e

        return cls(
            access_token=access_token,
            refresh_token=data.get("refresh_token") or None,
            expiry=expiry,
            scope=data.get("scope") or None,
            token_type=data.get("token_type") or "Bearer",
        )


@dataclass(frozen=True)
class TokenRecord:
    """Snapshot of a user's stored tokens."""

    user_id: str
    access_token: str
    refresh_token: str | None = None
    expiry: int | None = None
    scope: str | None = None
    token_type: str = "Bearer"
    updated_at: datetime | None = None

    @classmethod
    def from_row(cls, row: DriveToken) -> "TokenRecord":
        return cls(
            user_id=row.user_id,
            access_token=row.access_token,
            refresh_token=row.refresh_token,
            expiry=row.expiry,
            scope=row.scope,
            token_type=row.token_type,
            updated_at=row.updated_at,
        )

    def is_expired(self, at_ms: int) -> bool:
        return self.expiry is not None and self.expiry <= at_ms

    def expires_within(self, window_ms: int, at_ms: int) -> bool:
        return self.expiry is not None and self.expiry < at_ms + window_ms


class TokenRefresher(Protocol):
    """Exchanges a refresh token for a new access token."""

    def refresh(self, refresh_token: str) -> TokenBundle:
        ...


class TokenCache:
    """Persists per-user OAuth credentials and keeps them fresh."""

    def __init__(
        self,
        engine: Engine,
        refresher: TokenRefresher,
        refresh_window_ms: int = DEFAULT_REFRESH_WINDOW_MS,
        clock=now_ms,
    ):
        self._engine = engine
        self._refresher = refresher
        self._refresh_window_ms = refresh_window_ms
        self._clock = clock

    def save(self, user_id: str, tokens: TokenBundle | Mapping[str, Any]) -> TokenRecord:
        """Insert or update the user's tokens.

        An existing refresh token is kept when the incoming payload has none.
        """
        bundle = tokens if isinstance(tokens, TokenBundle) else TokenBundle.from_mapping(tokens)

        with transaction(self._engine) as session:
            row = session.exec(select(DriveToken).where(DriveToken.user_id == user_id)).first()
            if row is None:
                row = DriveToken(user_id=user_id, access_token=bundle.access_token)
            row.access_token = bundle.access_token
            row.refresh_token = bundle.refresh_token or row.refresh_token
            row.token_type = bundle.token_type
            row.expiry = bundle.expiry
            row.scope = bundle.scope
            row.updated_at = datetime.now(UTC)
            session.add(row)
            session.flush()
            record = TokenRecord.from_row(row)

        logger.info(f"Saved Google Drive tokens for user {user_id}")
        return record

    def load(self, user_id: str) -> TokenRecord | None:
        """Return the stored tokens, or None when the user never connected."""
        try:
            with Session(self._engine) as session:
                row = session.exec(select(DriveToken).where(DriveToken.user_id == user_id)).first()
                return TokenRecord.from_row(row) if row else None
        except SQLAlchemyError as e:
            logger.error(f"Failed to load tokens for user {user_id}: {e}")
            raise PersistenceError("Failed to load Google Drive tokens") from e

    def get_valid(self, user_id: str) -> TokenRecord | None:
        """Return usable tokens, refreshing them inside the refresh window.

        Raises:
            ReauthRequired: the access token expired and there is no refresh token.
            TokenRefreshFailed: the provider refused the refresh.
        """
        record = self.load(user_id)
        if record is None:
            return None

        now = self._clock()
        if not record.expires_within(self._refresh_window_ms, now):
            return record

        if not record.refresh_token:
            if record.is_expired(now):
                raise ReauthRequired()
            # Still valid for a few minutes and nothing to refresh with.
            return record

        try:
            fresh = self._refresher.refresh(record.refresh_token)
        except Exception as e:
            logger.error(f"Token refresh failed for user {user_id}: {e}")
            raise TokenRefreshFailed() from e

        refreshed = replace(
            record,
            access_token=fresh.access_token,
            refresh_token=fresh.refresh_token or record.refresh_token,
            expiry=fresh.expiry,
            scope=fresh.scope or record.scope,
        )
        self._update_access_token(refreshed)
        logger.info(f"Refreshed Google Drive access token for user {user_id}")
        return refreshed

    def has_tokens(self, user_id: str) -> bool:
        try:
            with Session(self._engine) as session:
                row = session.exec(
                    select(DriveToken.id).where(DriveToken.user_id == user_id)
                ).first()
                return row is not None
        except SQLAlchemyError as e:
            logger.error(f"Failed to check tokens for user {user_id}: {e}")
            raise PersistenceError("Failed to check Google Drive tokens") from e

    def delete(self, user_id: str) -> bool:
        """Forget the user's tokens. Returns True if a row existed."""
        with transaction(self._engine) as session:
            row = session.exec(select(DriveToken).where(DriveToken.user_id == user_id)).first()
            if row is None:
                return False
            session.delete(row)

        logger.info(f"Deleted Google Drive tokens for user {user_id}")
        return True

    def users_with_tokens(self) -> list[str]:
        with Session(self._engine) as session:
            return list(session.exec(select(DriveToken.user_id)).all())

    def expiring_users(self) -> list[str]:
        """Users whose access token expires within the refresh window."""
        cutoff = self._clock() + self._refresh_window_ms
        statement = (
            select(DriveToken.user_id)
            .where(col(DriveToken.expiry).is_not(None))
            .where(col(DriveToken.expiry) < cutoff)
        )
        with Session(self._engine) as session:
            return list(session.exec(statement).all())

    def _update_access_token(self, record: TokenRecord) -> None:
        with transaction(self._engine) as session:
            row = session.exec(
                select(DriveToken).where(DriveToken.user_id == record.user_id)
            ).first()
            if row is None:
                # Disconnected while the refresh was in flight.
                return
            row.access_token = record.access_token
            row.refresh_token = record.refresh_token
            row.expiry = record.expiry
            row.scope = record.scope
            row.updated_at = datetime.now(UTC)
            session.add(row)
