"""Category models used to group albums."""

from datetime import UTC, datetime

from sqlmodel import Field, SQLModel


class Category(SQLModel, table=True):
    """A user-defined album category."""
    __tablename__ = "categories"

    id: int | None = Field(default=None, primary_key=True)
    user_id: str = Field(index=True, max_length=255)
    name: str = Field(max_length=255)
    description: str | None = None
    color: str | None = Field(default=None, max_length=7)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class AlbumCategory(SQLModel, table=True):
    """Association between an album and a category."""
    __tablename__ = "album_categories"

    album_id: int = Field(foreign_key="albums.id", primary_key=True)
    category_id: int = Field(foreign_key="categories.id", primary_key=True)
    user_id: str = Field(max_length=255)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
