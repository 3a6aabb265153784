"""Google OAuth and Drive API client construction."""
import logging
from datetime import UTC, datetime

import httplib2
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_httplib2 import AuthorizedHttp
from google_auth_oauthlib.flow import Flow
from googleapiclient.discovery import build

from app.drive.tokens import TokenBundle

logger = logging.getLogger(__name__)

# Scope for Google Drive API: only files created by this app
SCOPES = ["https://www.googleapis.com/auth/drive.file"]

TOKEN_URI = "https://oauth2.googleapis.com/token"
AUTH_URI = "https://accounts.google.com/o/oauth2/auth"


def credentials_to_bundle(credentials: Credentials) -> TokenBundle:
    """Convert google-auth credentials into the stored token shape."""
    expiry = None
    if credentials.expiry is not None:
        # google-auth keeps expiry as a naive UTC datetime
        expiry = int(credentials.expiry.replace(tzinfo=UTC).timestamp() * 1000)
    return TokenBundle(
        access_token=credentials.token,
        refresh_token=credentials.refresh_token,
        expiry=expiry,
        scope=" ".join(credentials.scopes) if credentials.scopes else None,
    )


class GoogleOAuthClient:
    """OAuth2 web-server flow for connecting a user's Google Drive."""

    def __init__(self, client_id: str, client_secret: str, redirect_uri: str):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri

    def _flow(self) -> Flow:
        client_config = {
            "web": {
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "auth_uri": AUTH_URI,
                "token_uri": TOKEN_URI,
                "redirect_uris": [self.redirect_uri],
            }
        }
        # The code is exchanged by a different Flow instance, so no PKCE verifier.
        return Flow.from_client_config(
            client_config,
            scopes=SCOPES,
            redirect_uri=self.redirect_uri,
            autogenerate_code_verifier=False,
        )

    def authorization_url(self) -> str:
        """URL the user opens to grant Drive access."""
        auth_url, _ = self._flow().authorization_url(access_type="offline", prompt="consent")
        return auth_url

    def exchange_code(self, code: str) -> TokenBundle:
        """Trade an authorization code for access and refresh tokens."""
        flow = self._flow()
        flow.fetch_token(code=code)
        logger.info("Exchanged authorization code for Google Drive tokens")
        return credentials_to_bundle(flow.credentials)

    def refresh(self, refresh_token: str) -> TokenBundle:
        """Obtain a new access token. Raises google.auth.exceptions.RefreshError."""
        credentials = Credentials(
            token=None,
            refresh_token=refresh_token,
            token_uri=TOKEN_URI,
            client_id=self.client_id,
            client_secret=self.client_secret,
            scopes=SCOPES,
        )
        credentials.refresh(Request())
        logger.info("Refreshed Google Drive credentials")
        return credentials_to_bundle(credentials)


def build_drive_service(access_token: str, timeout: float | None = None):
    """Build an authenticated Drive v3 service with a bounded per-call timeout.

    The credentials carry no refresh token: refreshing is the token cache's
    job, so an expired token surfaces as an auth error instead of a silent,
    unpersisted refresh.
    """
    credentials = Credentials(token=access_token)
    http = AuthorizedHttp(credentials, http=httplib2.Http(timeout=timeout))
    return build("drive", "v3", http=http, cache_discovery=False)


def expiry_to_datetime(expiry_ms: int | None) -> datetime | None:
    if expiry_ms is None:
        return None
    return datetime.fromtimestamp(expiry_ms / 1000, tz=UTC)
