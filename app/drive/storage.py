"""Google Drive storage adapter.

Every operation works inside one user's app folder in their own Drive.
Provider failures are translated into the error taxonomy in
``app.core.errors``: rejected credentials become ``StorageAuthError``,
everything else ``StorageError``. Deleting a file that is already gone
counts as success.
"""
import io
import logging
import re
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime

import httplib2
from google.auth.exceptions import RefreshError
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseUpload

from app.core.errors import StorageAuthError, StorageError
from app.drive.client import build_drive_service
from app.drive.tokens import TokenBundle, TokenRecord

logger = logging.getLogger(__name__)

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
DEFAULT_QUOTA_BYTES = 15 * 1024 * 1024 * 1024
AUTH_STATUSES = {401, 403}

_FILE_ID_PATTERN = re.compile(r"[?&]id=([^&#]+)")


def public_url(file_id: str) -> str:
    """Unauthenticated download URL for a public Drive file."""
    return f"https://drive.google.com/uc?id={file_id}&export=download"


def thumbnail_url(file_id: str) -> str:
    """Google user-content URL that renders public images inline."""
    return f"https://lh3.googleusercontent.com/d/{file_id}=w1000-h1000"


def file_id_from_url(url: str) -> str | None:
    """Extract the file id from a ``...?id=<file id>`` Drive URL."""
    match = _FILE_ID_PATTERN.search(url)
    return match.group(1) if match else None


def _parse_time(value: str | None) -> datetime | None:
    """Parse an RFC 3339 timestamp from the Drive API as an aware datetime."""
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


@dataclass(frozen=True)
class DriveFile:
    """A photo stored in Drive."""

    id: str
    name: str
    public_url: str
    thumbnail_url: str
    created_time: datetime | None = None
    size: int | None = None

    @classmethod
    def from_api(cls, data: dict) -> "DriveFile":
        size = data.get("size")
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            public_url=public_url(data["id"]),
            thumbnail_url=thumbnail_url(data["id"]),
            created_time=_parse_time(data.get("createdTime")),
            size=int(size) if size is not None else None,
        )


@dataclass
class BatchDeleteResult:
    """Outcome of a multi-item delete; never raised, always returned."""

    success: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {"success": list(self.success), "failed": list(self.failed)}


Tokens = TokenRecord | TokenBundle


@contextmanager
def provider_errors(action: str) -> Iterator[None]:
    """Translate Drive client exceptions raised while performing ``action``."""
    try:
        yield
    except HttpError as e:
        if e.resp.status in AUTH_STATUSES:
            logger.error(f"Drive rejected credentials while trying to {action}: {e}")
            raise StorageAuthError() from e
        reason = getattr(e, "reason", None) or str(e)
        logger.error(f"Drive request failed while trying to {action}: {reason}")
        raise StorageError(f"Failed to {action}: {reason}") from e
    except RefreshError as e:
        logger.error(f"Drive credentials expired while trying to {action}: {e}")
        raise StorageAuthError() from e
    except (httplib2.HttpLib2Error, OSError) as e:
        # OSError covers socket timeouts and connection resets
        logger.error(f"Drive unreachable while trying to {action}: {e}")
        raise StorageError(f"Failed to {action}: {e}") from e


class DriveStorage:
    """Folder-per-user photo storage on Google Drive."""

    def __init__(
        self,
        folder_name: str = "PhotoApp",
        timeout: float | None = 30.0,
        service_factory: Callable = build_drive_service,
    ):
        self.folder_name = folder_name
        self._timeout = timeout
        self._service_factory = service_factory

    def _service(self, tokens: Tokens):
        return self._service_factory(tokens.access_token, self._timeout)

    def ensure_user_folder(self, tokens: Tokens, user_id: str) -> str:
        """Find or create the app folder and return its file id."""
        escaped = self.folder_name.replace("\\", "\\\\").replace("'", "\\'")
        query = f"mimeType = '{FOLDER_MIME_TYPE}' and name = '{escaped}' and trashed = false"

        with provider_errors("find the photo folder"):
            service = self._service(tokens)
            response = (
                service.files()
                .list(q=query, fields="files(id, name)", spaces="drive")
                .execute()
            )
            existing = response.get("files", [])
            if existing:
                return existing[0]["id"]

            folder = (
                service.files()
                .create(
                    body={
                        "name": self.folder_name,
                        "mimeType": FOLDER_MIME_TYPE,
                        "appProperties": {"owner": user_id},
                    },
                    fields="id",
                )
                .execute()
            )

        logger.info(f"Created Drive folder '{self.folder_name}' for user {user_id}: {folder['id']}")
        return folder["id"]

    def upload(
        self,
        tokens: Tokens,
        file_name: str,
        data: bytes,
        mime_type: str,
        folder_id: str | None = None,
        user_id: str = "",
    ) -> DriveFile:
        """Upload a photo and make it publicly readable.

        A failed permission grant is logged and ignored: the file is still
        reachable through an authenticated link.
        """
        if folder_id is None:
            folder_id = self.ensure_user_folder(tokens, user_id)

        media = MediaIoBaseUpload(io.BytesIO(data), mimetype=mime_type, resumable=False)
        with provider_errors(f"upload {file_name}"):
            service = self._service(tokens)
            response = (
                service.files()
                .create(
                    body={"name": file_name, "parents": [folder_id]},
                    media_body=media,
                    fields="id, name, createdTime, size",
                )
                .execute()
            )

        uploaded = DriveFile.from_api(response)
        try:
            service.permissions().create(
                fileId=uploaded.id, body={"role": "reader", "type": "anyone"}
            ).execute()
        except (HttpError, RefreshError, httplib2.HttpLib2Error, OSError) as e:
            logger.warning(f"Could not make {file_name} public: {e}")

        logger.info(f"Uploaded '{file_name}' to Google Drive: {uploaded.id}")
        return uploaded

    def list_photos(self, tokens: Tokens, user_id: str = "", make_public: bool = True) -> list[DriveFile]:
        """List the folder's images, newest first."""
        folder_id = self.ensure_user_folder(tokens, user_id)
        query = f"'{folder_id}' in parents and trashed = false and mimeType contains 'image/'"

        files: list[dict] = []
        with provider_errors("list photos"):
            service = self._service(tokens)
            page_token = None
            while True:
                response = (
                    service.files()
                    .list(
                        q=query,
                        fields="nextPageToken, files(id, name, createdTime, size)",
                        orderBy="createdTime desc",
                        pageToken=page_token,
                        spaces="drive",
                    )
                    .execute()
                )
                files.extend(response.get("files", []))
                page_token = response.get("nextPageToken")
                if not page_token:
                    break

        if make_public:
            for item in files:
                self._ensure_public(service, item["id"])

        logger.info(f"Found {len(files)} photos in Google Drive")
        return [DriveFile.from_api(item) for item in files]

    def delete(self, tokens: Tokens, file_id: str) -> bool:
        """Delete a file. A file that no longer exists counts as deleted."""
        with provider_errors(f"delete {file_id}"):
            service = self._service(tokens)
            try:
                service.files().delete(fileId=file_id).execute()
            except HttpError as e:
                if e.resp.status != 404:
                    raise
                logger.info(f"Drive file {file_id} not found, treating as deleted")
                return True

        logger.info(f"Deleted Drive file {file_id}")
        return True

    def batch_delete(self, tokens: Tokens, file_ids: list[str]) -> BatchDeleteResult:
        """Delete several files, collecting per-item failures.

        Only rejected credentials abort the batch, since every remaining
        item would fail the same way. The ids deleted before that point are
        kept on the raised error as ``deleted``.
        """
        result = BatchDeleteResult()
        for file_id in file_ids:
            try:
                deleted = self.delete(tokens, file_id)
            except StorageAuthError as e:
                e.deleted = tuple(result.success)
                raise
            except StorageError as e:
                logger.warning(f"Failed to delete {file_id}: {e}")
                deleted = False

            if deleted:
                result.success.append(file_id)
            else:
                result.failed.append(file_id)
        return result

    def _ensure_public(self, service, file_id: str) -> bool:
        """Grant anyone-with-link read access unless it is already granted."""
        try:
            permissions = (
                service.permissions()
                .list(fileId=file_id, fields="permissions(id,type,role)")
                .execute()
            )
            if any(
                p.get("type") == "anyone" and p.get("role") == "reader"
                for p in permissions.get("permissions", [])
            ):
                return True

            service.permissions().create(
                fileId=file_id, body={"role": "reader", "type": "anyone"}
            ).execute()
            logger.info(f"Made Drive file {file_id} public")
            return True
        except (HttpError, RefreshError, httplib2.HttpLib2Error, OSError) as e:
            logger.warning(f"Could not make Drive file {file_id} public: {e}")
            return False

    def storage_usage(self, tokens: Tokens) -> dict:
        """Bytes used and quota of the user's Drive."""
        with provider_errors("read storage quota"):
            about = self._service(tokens).about().get(fields="storageQuota").execute()
        quota = about.get("storageQuota", {})
        return {
            "used": int(quota.get("usage") or 0),
            "total": int(quota.get("limit") or DEFAULT_QUOTA_BYTES),
        }

    def validate_tokens(self, tokens: Tokens) -> bool:
        """Check that Drive accepts the access token."""
        try:
            with provider_errors("validate tokens"):
                self._service(tokens).files().list(pageSize=1, fields="files(id)").execute()
        except StorageError:
            return False
        return True
