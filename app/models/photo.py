"""Photo metadata model mirroring each Drive object's lifecycle status.

Rows are keyed by the Drive file id but are not transactionally linked to
the Drive object: the object is created or deleted first, and the row is
written only after the provider confirmed the change.
"""

from datetime import UTC, datetime
from enum import StrEnum

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel


class PhotoStatus(StrEnum):
    """Curation stage of a photo."""
    UNSORTED = "unsorted"
    LIBRARY = "library"
    ALBUM = "album"


class PhotoMetadata(SQLModel, table=True):
    """Lifecycle status of one uploaded photo.

    Attributes:
        id: Surrogate key.
        user_id: Owner of the photo.
        photo_id: Google Drive file id.
        photo_name: Stored file name (``<uuid>-<original name>``).
        photo_url: Public download URL.
        status: One of "unsorted", "library" or "album".
        size: File size in bytes as reported by Drive.
        created_time: Creation time reported by Drive.
        moved_to_library_at: Set when the photo enters the library,
            cleared when it returns to unsorted.
    """
    __tablename__ = "photo_metadata"
    __table_args__ = (UniqueConstraint("user_id", "photo_id"),)

    id: int | None = Field(default=None, primary_key=True)
    user_id: str = Field(index=True, max_length=255)
    photo_id: str = Field(index=True, max_length=255)
    photo_name: str = Field(max_length=500)
    photo_url: str
    status: str = Field(default=PhotoStatus.UNSORTED.value, max_length=20, index=True)
    size: int | None = None
    created_time: datetime | None = None
    moved_to_library_at: datetime | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def effective_date(self) -> datetime:
        """Date used to place the photo on the library timeline."""
        return self.created_time or self.moved_to_library_at or self.created_at
