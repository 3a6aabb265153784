"""Request bodies for album and category endpoints."""

from pydantic import BaseModel, Field

HEX_COLOR = r"^#[0-9A-Fa-f]{6}$"


class AlbumCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    hexcolor: str = Field(pattern=HEX_COLOR)
    year: int | None = None
    coverimage: str | None = None
    category_id: int | None = None


class AlbumUpdate(BaseModel):
    """Partial update; an explicit ``category_id: null`` removes the category."""

    title: str | None = Field(default=None, min_length=1, max_length=255)
    hexcolor: str | None = Field(default=None, pattern=HEX_COLOR)
    year: int | None = None
    coverimage: str | None = None
    category_id: int | None = None


class AlbumPhotoIn(BaseModel):
    photo_name: str = Field(min_length=1)
    photo_url: str = ""


class BatchAlbumPhotosIn(BaseModel):
    photos: list[AlbumPhotoIn] = Field(min_length=1)


class CategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    color: str | None = Field(default=None, pattern=HEX_COLOR)


class CategoryUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    color: str | None = Field(default=None, pattern=HEX_COLOR)
