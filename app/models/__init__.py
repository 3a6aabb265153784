from app.models.album import Album, AlbumPhoto
from app.models.category import AlbumCategory, Category
from app.models.photo import PhotoMetadata, PhotoStatus
from app.models.token import DriveToken

__all__ = [
    "Album",
    "AlbumPhoto",
    "AlbumCategory",
    "Category",
    "DriveToken",
    "PhotoMetadata",
    "PhotoStatus",
]
