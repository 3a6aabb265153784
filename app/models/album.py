"""Album models.

An album is a named, colored collection owned by one user. Photos are
linked by name through AlbumPhoto; a linked photo has status "album".
"""

from datetime import UTC, datetime

from sqlmodel import Field, SQLModel


class Album(SQLModel, table=True):
    """A user-defined photo album.

    Attributes:
        id: Surrogate key.
        user_id: Owner of the album.
        title: Display title.
        hexcolor: Display color as ``#RRGGBB``.
        year: Year the album is filed under.
        coverimage: Optional URL of the cover photo.
    """
    __tablename__ = "albums"

    id: int | None = Field(default=None, primary_key=True)
    user_id: str = Field(index=True, max_length=255)
    title: str = Field(max_length=255)
    hexcolor: str = Field(max_length=7)
    year: int | None = None
    coverimage: str | None = Field(default=None, max_length=500)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class AlbumPhoto(SQLModel, table=True):
    """Membership of a photo in an album."""
    __tablename__ = "album_photos"

    id: int | None = Field(default=None, primary_key=True)
    album_id: int = Field(foreign_key="albums.id", index=True)
    user_id: str = Field(index=True, max_length=255)
    photo_name: str = Field(max_length=500)
    photo_url: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
