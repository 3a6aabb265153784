"""Photo metadata store and status transitions.

The ``photo_metadata`` table mirrors every uploaded Drive object with its
curation status. A photo is in exactly one status at a time:

    unsorted -> library      move to library (stamps moved_to_library_at)
    unsorted -> album        attached to an album
    library  -> album        attached to an album (policy flag)
    library  -> unsorted     move to unsorted (clears moved_to_library_at)
    album    -> unsorted     move to unsorted, or detached from its last album

Rows whose status does not allow the requested transition are skipped,
not rejected.
"""
import logging
from collections.abc import Iterable
from datetime import UTC, datetime

from sqlalchemy import func
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, col, or_, select

from app.core.database import transaction
from app.core.errors import PersistenceError
from app.drive.storage import DriveFile
from app.models import AlbumPhoto, PhotoMetadata, PhotoStatus

logger = logging.getLogger(__name__)

TRANSITIONS: dict[PhotoStatus, set[PhotoStatus]] = {
    PhotoStatus.UNSORTED: {PhotoStatus.LIBRARY, PhotoStatus.ALBUM},
    PhotoStatus.LIBRARY: {PhotoStatus.UNSORTED, PhotoStatus.ALBUM},
    PhotoStatus.ALBUM: {PhotoStatus.UNSORTED},
}


def resolve_identifier(session: Session, user_id: str, identifier: str) -> PhotoMetadata | None:
    """Find the photo a caller-supplied identifier refers to.

    Lookup order: exact Drive file id, exact file name, then the first
    (oldest) photo whose name contains the identifier. The substring step
    is ambiguous when several names share the fragment; callers that need
    certainty must pass a file id.
    """
    if not identifier:
        return None

    owned = select(PhotoMetadata).where(PhotoMetadata.user_id == user_id)
    for condition in (
        PhotoMetadata.photo_id == identifier,
        PhotoMetadata.photo_name == identifier,
        col(PhotoMetadata.photo_name).contains(identifier, autoescape=True),
    ):
        row = session.exec(owned.where(condition).order_by(col(PhotoMetadata.id))).first()
        if row is not None:
            return row
    return None


def _find_exact(session: Session, user_id: str, identifier: str) -> PhotoMetadata | None:
    """Match by Drive file id or file name only."""
    statement = (
        select(PhotoMetadata)
        .where(PhotoMetadata.user_id == user_id)
        .where(or_(PhotoMetadata.photo_id == identifier, PhotoMetadata.photo_name == identifier))
        .order_by(col(PhotoMetadata.id))
    )
    return session.exec(statement).first()


def _album_links(session: Session, user_id: str, row: PhotoMetadata) -> list[AlbumPhoto]:
    # Album links reference photos by name or, from older clients, by file id
    statement = (
        select(AlbumPhoto)
        .where(AlbumPhoto.user_id == user_id)
        .where(col(AlbumPhoto.photo_name).in_([row.photo_name, row.photo_id]))
    )
    return list(session.exec(statement).all())


class PhotoMetadataStore:
    """Relational mirror of each photo's lifecycle status."""

    def __init__(self, engine: Engine, album_accepts_library_photos: bool = True):
        self._engine = engine
        self._transitions = {status: set(targets) for status, targets in TRANSITIONS.items()}
        if not album_accepts_library_photos:
            self._transitions[PhotoStatus.LIBRARY].discard(PhotoStatus.ALBUM)

    def can_transition(self, current: str, target: PhotoStatus) -> bool:
        return target in self._transitions.get(PhotoStatus(current), set())

    def _apply(self, row: PhotoMetadata, target: PhotoStatus) -> None:
        now = datetime.now(UTC)
        row.status = target.value
        row.updated_at = now
        if target is PhotoStatus.LIBRARY:
            row.moved_to_library_at = now
        elif target is PhotoStatus.UNSORTED:
            row.moved_to_library_at = None

    def _read(self, statement) -> list[PhotoMetadata]:
        try:
            with Session(self._engine) as session:
                return list(session.exec(statement).all())
        except SQLAlchemyError as e:
            logger.error(f"Failed to read photo metadata: {e}")
            raise PersistenceError("Failed to read photo metadata") from e

    def list_by_status(self, user_id: str, status: PhotoStatus | None = None) -> list[PhotoMetadata]:
        """Photos of a user, newest effective date first."""
        effective_date = func.coalesce(
            PhotoMetadata.created_time,
            PhotoMetadata.moved_to_library_at,
            PhotoMetadata.created_at,
        )
        statement = select(PhotoMetadata).where(PhotoMetadata.user_id == user_id)
        if status is not None:
            statement = statement.where(PhotoMetadata.status == status.value)
        statement = statement.order_by(effective_date.desc(), col(PhotoMetadata.id).desc())
        return self._read(statement)

    def all_for_user(self, user_id: str) -> list[PhotoMetadata]:
        return self._read(select(PhotoMetadata).where(PhotoMetadata.user_id == user_id))

    def resolve_identifier(self, user_id: str, identifier: str) -> PhotoMetadata | None:
        with Session(self._engine) as session:
            return resolve_identifier(session, user_id, identifier)

    def resolve_many(self, user_id: str, identifiers: Iterable[str]) -> dict[str, PhotoMetadata | None]:
        """Resolve each identifier, keeping the caller's order."""
        with Session(self._engine) as session:
            return {
                identifier: resolve_identifier(session, user_id, identifier)
                for identifier in identifiers
            }

    def insert_photos(
        self,
        user_id: str,
        files: Iterable[DriveFile],
        status: PhotoStatus = PhotoStatus.UNSORTED,
    ) -> list[PhotoMetadata]:
        """Record uploaded files, skipping ones that already have a row."""
        rows = []
        with transaction(self._engine) as session:
            for drive_file in files:
                existing = session.exec(
                    select(PhotoMetadata)
                    .where(PhotoMetadata.user_id == user_id)
                    .where(PhotoMetadata.photo_id == drive_file.id)
                ).first()
                if existing is not None:
                    rows.append(existing)
                    continue

                row = PhotoMetadata(
                    user_id=user_id,
                    photo_id=drive_file.id,
                    photo_name=drive_file.name,
                    photo_url=drive_file.public_url,
                    status=status.value,
                    size=drive_file.size,
                    created_time=drive_file.created_time,
                )
                session.add(row)
                rows.append(row)
            session.flush()
        return rows

    def move_to_library(self, user_id: str, identifiers: Iterable[str]) -> int:
        """Move unsorted photos to the library. Returns how many moved."""
        return self._transition_many(user_id, identifiers, PhotoStatus.LIBRARY)

    def move_to_unsorted(self, user_id: str, identifiers: Iterable[str]) -> int:
        """Return library and album photos to unsorted, dropping album links."""
        return self._transition_many(user_id, identifiers, PhotoStatus.UNSORTED)

    def _transition_many(self, user_id: str, identifiers: Iterable[str], target: PhotoStatus) -> int:
        moved = 0
        with transaction(self._engine) as session:
            for identifier in identifiers:
                row = _find_exact(session, user_id, identifier)
                if row is None or not self.can_transition(row.status, target):
                    continue
                if row.status == PhotoStatus.ALBUM:
                    for link in _album_links(session, user_id, row):
                        session.delete(link)
                self._apply(row, target)
                session.add(row)
                moved += 1

        logger.info(f"Moved {moved} photos to {target.value} for user {user_id}")
        return moved

    def attach_to_album(self, session: Session, user_id: str, identifier: str) -> bool:
        """Mark a photo as used by an album, within the caller's transaction."""
        row = _find_exact(session, user_id, identifier)
        if row is None or not self.can_transition(row.status, PhotoStatus.ALBUM):
            return False
        self._apply(row, PhotoStatus.ALBUM)
        session.add(row)
        return True

    def detach_from_album(self, session: Session, user_id: str, identifier: str) -> bool:
        """Return an album photo to unsorted once no album links remain.

        Must run after the caller deleted the link, in the same transaction.
        """
        row = _find_exact(session, user_id, identifier)
        if row is None or row.status != PhotoStatus.ALBUM:
            return False
        session.flush()
        if _album_links(session, user_id, row):
            return False
        self._apply(row, PhotoStatus.UNSORTED)
        session.add(row)
        return True

    def delete_rows(self, user_id: str, photo_ids: Iterable[str]) -> int:
        """Delete rows (and their album links) for Drive files already deleted."""
        photo_ids = list(photo_ids)
        if not photo_ids:
            return 0

        with transaction(self._engine) as session:
            rows = session.exec(
                select(PhotoMetadata)
                .where(PhotoMetadata.user_id == user_id)
                .where(col(PhotoMetadata.photo_id).in_(photo_ids))
            ).all()
            for row in rows:
                for link in _album_links(session, user_id, row):
                    session.delete(link)
                session.delete(row)
            deleted = len(rows)

        logger.info(f"Deleted {deleted} photo metadata rows for user {user_id}")
        return deleted
