#!/usr/bin/env python3
"""
Connect a user's Google Drive from the command line.

Runs the installed-app OAuth flow and stores the resulting tokens for the
given user, the same way the /photos/drive-callback endpoint does. Useful
for local development and for re-connecting a user whose refresh token was
revoked.

Usage:
    python scripts/connect_drive.py --user-id=USER_ID

Requirements:
    - GOOGLE_DRIVE_CLIENT_ID and GOOGLE_DRIVE_CLIENT_SECRET must be set in .env
    - Or pass them as arguments: python scripts/connect_drive.py --user-id=U --client-id=XXX --client-secret=YYY
"""
import argparse
import os
import sys

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv
from google_auth_oauthlib.flow import InstalledAppFlow

from app.core.config import settings
from app.core.database import create_db_and_tables, engine
from app.drive.client import AUTH_URI, SCOPES, TOKEN_URI, GoogleOAuthClient, credentials_to_bundle
from app.drive.tokens import TokenCache


def main():
    parser = argparse.ArgumentParser(description="Store Google Drive tokens for a user")
    parser.add_argument("--user-id", required=True, help="User id to connect")
    parser.add_argument("--client-id", help="Google OAuth Client ID")
    parser.add_argument("--client-secret", help="Google OAuth Client Secret")
    args = parser.parse_args()

    load_dotenv()
    client_id = args.client_id or os.getenv("GOOGLE_DRIVE_CLIENT_ID") or settings.google_drive_client_id
    client_secret = (
        args.client_secret
        or os.getenv("GOOGLE_DRIVE_CLIENT_SECRET")
        or settings.google_drive_client_secret
    )

    if not client_id or not client_secret:
        print("Error: GOOGLE_DRIVE_CLIENT_ID and GOOGLE_DRIVE_CLIENT_SECRET are required.")
        print()
        print("Either:")
        print("  1. Set them in .env file, or")
        print("  2. Pass them as arguments:")
        print("     python scripts/connect_drive.py --user-id=U --client-id=XXX --client-secret=YYY")
        sys.exit(1)

    # Create OAuth flow for installed/desktop app (no redirect URI needed)
    client_config = {
        "installed": {
            "client_id": client_id,
            "client_secret": client_secret,
            "auth_uri": AUTH_URI,
            "token_uri": TOKEN_URI,
            "redirect_uris": ["http://localhost"],
        }
    }

    flow = InstalledAppFlow.from_client_config(client_config, SCOPES)

    # Allow HTTP for localhost (required for manual copy-paste flow)
    os.environ["OAUTHLIB_INSECURE_TRANSPORT"] = "1"

    print("=" * 60)
    print("Google Drive OAuth Setup")
    print("=" * 60)
    print()
    print("Copy the URL below and open it in a browser (on any machine).")
    print("After authorizing, you'll be redirected to a localhost URL.")
    print("Copy the FULL redirect URL and paste it back here.")
    print()

    # Set redirect URI for manual copy-paste flow
    flow.redirect_uri = "http://localhost:8080/"

    auth_url, _ = flow.authorization_url(access_type="offline", prompt="consent")

    print("Open this URL in a browser:")
    print()
    print(auth_url)
    print()

    redirect_response = input("Paste the full redirect URL here: ").strip()

    flow.fetch_token(authorization_response=redirect_response)
    bundle = credentials_to_bundle(flow.credentials)

    create_db_and_tables()
    oauth_client = GoogleOAuthClient(client_id, client_secret, flow.redirect_uri)
    record = TokenCache(engine, refresher=oauth_client).save(args.user_id, bundle)

    print()
    print("=" * 60)
    print(f"SUCCESS! Google Drive connected for user {record.user_id}.")
    if not record.refresh_token:
        print("Warning: no refresh token was issued; the connection lasts until the access token expires.")
    print("=" * 60)


if __name__ == "__main__":
    main()
