"""Photo lifecycle service.

Coordinates the token cache, the Drive adapter and the metadata store.
Every write follows the same two-phase order: change the Drive object
first, then, only once Drive confirmed it, write the metadata rows in one
transaction. Drive calls never run while a transaction is open.

Divergence left behind by a crash between the two phases is repaired by
``reconcile``, which the scheduler runs periodically.
"""
import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from uuid import uuid4

from app.core.errors import NotConnected, PersistenceError, StorageAuthError, StorageError
from app.drive.storage import BatchDeleteResult, DriveFile, DriveStorage, file_id_from_url
from app.drive.tokens import TokenCache, TokenRecord
from app.models import PhotoMetadata, PhotoStatus
from app.photos.metadata import PhotoMetadataStore

logger = logging.getLogger(__name__)

LibraryTimeline = dict[str, dict[str, dict[str, list[PhotoMetadata]]]]


@dataclass(frozen=True)
class PhotoUpload:
    """A file received from the client."""

    filename: str
    content: bytes
    mime_type: str


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (as read back from SQLite) as UTC."""
    return value.replace(tzinfo=UTC) if value.tzinfo is None else value.astimezone(UTC)


def group_by_date(photos: list[PhotoMetadata]) -> LibraryTimeline:
    """Group photos into ``{year: {month: {day: [photos]}}}``.

    Month and day keys are zero-padded. Photos keep their input order
    inside each day.
    """
    grouped: LibraryTimeline = {}
    for photo in photos:
        date = photo.effective_date
        year, month, day = str(date.year), f"{date.month:02d}", f"{date.day:02d}"
        grouped.setdefault(year, {}).setdefault(month, {}).setdefault(day, []).append(photo)
    return grouped


class PhotoLifecycleService:
    """Upload, list, move and delete a user's photos."""

    def __init__(
        self,
        tokens: TokenCache,
        storage: DriveStorage,
        metadata: PhotoMetadataStore,
        upload_atomic: bool = True,
        reconcile_grace: timedelta = timedelta(minutes=10),
        clock=lambda: datetime.now(UTC),
    ):
        self._tokens = tokens
        self._storage = storage
        self._metadata = metadata
        self._upload_atomic = upload_atomic
        self._reconcile_grace = reconcile_grace
        self._clock = clock

    def _require_connection(self, user_id: str) -> None:
        if not self._tokens.has_tokens(user_id):
            raise NotConnected()

    def _valid_tokens(self, user_id: str) -> TokenRecord:
        self._require_connection(user_id)
        record = self._tokens.get_valid(user_id)
        if record is None:
            # Disconnected between the two reads
            raise NotConnected()
        return record

    def upload(self, files: list[PhotoUpload], user_id: str) -> list[PhotoMetadata]:
        """Upload photos to the user's Drive and record them as unsorted.

        The first failing file aborts the batch with an error naming it.
        With ``upload_atomic`` the files uploaded before it are deleted
        again and no rows are written; otherwise their rows are kept.
        """
        tokens = self._valid_tokens(user_id)
        if not files:
            return []

        logger.info(f"Uploading {len(files)} photo(s) to Google Drive for user {user_id}")
        folder_id = self._storage.ensure_user_folder(tokens, user_id)

        uploaded: list[DriveFile] = []
        rows: list[PhotoMetadata] = []
        for upload in files:
            file_name = f"{uuid4()}-{upload.filename}"
            try:
                drive_file = self._storage.upload(
                    tokens,
                    file_name,
                    upload.content,
                    upload.mime_type,
                    folder_id=folder_id,
                    user_id=user_id,
                )
            except StorageError as e:
                logger.error(f"Upload of {upload.filename} failed: {e}")
                if self._upload_atomic:
                    self._discard(tokens, uploaded)
                raise e.__class__(f"Failed to upload {upload.filename}: {e.message}") from e

            uploaded.append(drive_file)
            if not self._upload_atomic:
                rows.extend(self._metadata.insert_photos(user_id, [drive_file]))

        if self._upload_atomic:
            try:
                rows = self._metadata.insert_photos(user_id, uploaded)
            except PersistenceError:
                self._discard(tokens, uploaded)
                raise

        logger.info(f"Uploaded {len(rows)} photo(s) for user {user_id}")
        return rows

    def _discard(self, tokens: TokenRecord, files: list[DriveFile]) -> None:
        """Best-effort removal of objects whose upload batch was abandoned."""
        for drive_file in files:
            try:
                self._storage.delete(tokens, drive_file.id)
            except StorageError as e:
                # Left for the reconciliation sweep
                logger.warning(f"Could not remove abandoned upload {drive_file.id}: {e}")

    def list_photos(
        self, user_id: str, status: PhotoStatus | None = None
    ) -> list[PhotoMetadata] | LibraryTimeline:
        """Photos filtered by status; the library is grouped by date."""
        self._require_connection(user_id)
        photos = self._metadata.list_by_status(user_id, status)
        if status is PhotoStatus.LIBRARY:
            return group_by_date(photos)
        return photos

    def list_drive_photos(self, user_id: str) -> list[DriveFile]:
        """Photos as Drive currently has them, newest first."""
        tokens = self._valid_tokens(user_id)
        return self._storage.list_photos(tokens, user_id)

    def move_to_library(self, user_id: str, photo_ids: list[str]) -> int:
        self._require_connection(user_id)
        return self._metadata.move_to_library(user_id, photo_ids)

    def move_to_unsorted(self, user_id: str, photo_ids: list[str]) -> int:
        self._require_connection(user_id)
        return self._metadata.move_to_unsorted(user_id, photo_ids)

    def delete(self, user_id: str, identifier: str) -> bool:
        """Delete one photo by file id, name or name fragment.

        Returns False when no photo matches.
        """
        self._require_connection(user_id)
        row = self._metadata.resolve_identifier(user_id, identifier)
        if row is None:
            logger.warning(f"No photo matching '{identifier}' for user {user_id}")
            return False

        tokens = self._valid_tokens(user_id)
        if not self._storage.delete(tokens, row.photo_id):
            return False

        self._metadata.delete_rows(user_id, [row.photo_id])
        logger.info(f"Deleted photo {row.photo_id} for user {user_id}")
        return True

    def delete_by_url(self, user_id: str, photo_url: str) -> bool:
        self._require_connection(user_id)
        file_id = file_id_from_url(photo_url)
        if not file_id:
            raise ValueError("Invalid Google Drive URL")
        return self.delete(user_id, file_id)

    def batch_delete(self, user_id: str, identifiers: list[str]) -> BatchDeleteResult:
        """Delete several photos, reporting per-item failures.

        ``success`` lists the deleted Drive file ids; ``failed`` lists the
        caller's identifiers that matched nothing or could not be deleted.
        """
        self._require_connection(user_id)
        resolved = self._metadata.resolve_many(user_id, identifiers)

        result = BatchDeleteResult()
        identifiers_by_file: dict[str, list[str]] = {}
        for identifier, row in resolved.items():
            if row is None:
                result.failed.append(identifier)
            else:
                identifiers_by_file.setdefault(row.photo_id, []).append(identifier)

        if identifiers_by_file:
            tokens = self._valid_tokens(user_id)
            try:
                drive_result = self._storage.batch_delete(tokens, list(identifiers_by_file))
            except StorageAuthError as e:
                self._metadata.delete_rows(user_id, e.deleted)
                raise
            self._metadata.delete_rows(user_id, drive_result.success)
            result.success.extend(drive_result.success)
            for file_id in drive_result.failed:
                result.failed.extend(identifiers_by_file[file_id])

        logger.info(
            f"Batch delete for user {user_id}: {len(result.success)} deleted, "
            f"{len(result.failed)} failed"
        )
        return result

    def reconcile(self, user_id: str) -> dict:
        """Repair divergence between Drive and the metadata rows.

        Drive images without a row are adopted as unsorted; rows whose
        image is gone are removed. Anything younger than the grace period
        is left alone because its upload or delete may still be in flight.
        """
        tokens = self._valid_tokens(user_id)
        drive_files = self._storage.list_photos(tokens, user_id, make_public=False)
        rows = self._metadata.all_for_user(user_id)

        cutoff = self._clock() - self._reconcile_grace
        known = {row.photo_id for row in rows}
        present = {drive_file.id for drive_file in drive_files}

        orphans = [
            drive_file
            for drive_file in drive_files
            if drive_file.id not in known
            and (drive_file.created_time is None or as_utc(drive_file.created_time) <= cutoff)
        ]
        stale = [
            row.photo_id
            for row in rows
            if row.photo_id not in present and as_utc(row.created_at) <= cutoff
        ]

        if orphans:
            self._metadata.insert_photos(user_id, orphans)
        removed = self._metadata.delete_rows(user_id, stale)

        stats = {"adopted": len(orphans), "removed": removed}
        logger.info(f"Reconciled photos for user {user_id}: {stats}")
        return stats
