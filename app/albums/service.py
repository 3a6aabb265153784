"""Album service.

Adding a photo to an album and the matching status transition happen in
one transaction, as do removing it and returning the photo to unsorted.
"""
import logging
from datetime import UTC, datetime

from sqlalchemy.engine import Engine
from sqlmodel import Session, col, select

from app.albums.categories import get_owned_category
from app.albums.schemas import AlbumCreate, AlbumPhotoIn, AlbumUpdate
from app.core.database import transaction
from app.core.errors import NotFound, PhotoLibraryError
from app.models import Album, AlbumCategory, AlbumPhoto, Category, PhotoMetadata
from app.photos.metadata import PhotoMetadataStore

logger = logging.getLogger(__name__)

SIZE_UNITS = ["B", "KB", "MB", "GB", "TB"]


def format_bytes(size: int) -> str:
    """Human readable size, base 1024, at most two decimals."""
    if size <= 0:
        return "0 B"
    value, exponent = float(size), 0
    while value >= 1024 and exponent < len(SIZE_UNITS) - 1:
        value /= 1024
        exponent += 1
    formatted = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{formatted} {SIZE_UNITS[exponent]}"


def _owned_album(session: Session, user_id: str, album_id: int) -> Album:
    album = session.get(Album, album_id)
    if album is None or album.user_id != user_id:
        raise NotFound("Album not found or access denied")
    return album


def _album_categories(session: Session, album_id: int) -> list[Category]:
    statement = (
        select(Category)
        .join(AlbumCategory, col(AlbumCategory.category_id) == col(Category.id))
        .where(AlbumCategory.album_id == album_id)
    )
    return list(session.exec(statement).all())


def _with_categories(session: Session, album: Album) -> dict:
    categories = _album_categories(session, album.id)
    return {
        **album.model_dump(),
        "category": categories[0].model_dump() if categories else None,
        "categories": [category.model_dump() for category in categories],
    }


class AlbumService:
    """Albums and their photo membership."""

    def __init__(self, engine: Engine, metadata: PhotoMetadataStore):
        self._engine = engine
        self._metadata = metadata

    def create_album(self, user_id: str, data: AlbumCreate) -> dict:
        with transaction(self._engine) as session:
            if data.category_id is not None:
                get_owned_category(session, user_id, data.category_id)

            album = Album(
                user_id=user_id,
                title=data.title,
                hexcolor=data.hexcolor,
                year=data.year,
                coverimage=data.coverimage,
            )
            session.add(album)
            session.flush()

            if data.category_id is not None:
                session.add(
                    AlbumCategory(album_id=album.id, category_id=data.category_id, user_id=user_id)
                )
                session.flush()
            created = _with_categories(session, album)

        logger.info(f"Created album {album.id} for user {user_id}")
        return created

    def list_albums(self, user_id: str) -> list[dict]:
        statement = (
            select(Album)
            .where(Album.user_id == user_id)
            .order_by(col(Album.created_at).desc(), col(Album.id).desc())
        )
        with Session(self._engine) as session:
            return [_with_categories(session, album) for album in session.exec(statement).all()]

    def get_album(self, album_id: int, user_id: str) -> dict:
        with Session(self._engine) as session:
            return _with_categories(session, _owned_album(session, user_id, album_id))

    def update_album(self, album_id: int, user_id: str, data: AlbumUpdate) -> dict:
        """Apply a partial update.

        ``category_id`` replaces the album's category; an explicit null
        removes it.
        """
        changes = data.model_dump(exclude_unset=True)
        if not changes:
            raise ValueError("No fields to update")

        with transaction(self._engine) as session:
            album = _owned_album(session, user_id, album_id)

            if "category_id" in changes:
                category_id = changes.pop("category_id")
                if category_id is not None:
                    get_owned_category(session, user_id, category_id)
                for link in session.exec(
                    select(AlbumCategory).where(AlbumCategory.album_id == album_id)
                ).all():
                    session.delete(link)
                session.flush()
                if category_id is not None:
                    session.add(
                        AlbumCategory(album_id=album_id, category_id=category_id, user_id=user_id)
                    )

            for name, value in changes.items():
                setattr(album, name, value)
            album.updated_at = datetime.now(UTC)
            session.add(album)
            session.flush()
            updated = _with_categories(session, album)

        return updated

    def delete_album(self, album_id: int, user_id: str) -> bool:
        """Delete an album; photos left in no album return to unsorted."""
        with transaction(self._engine) as session:
            album = _owned_album(session, user_id, album_id)

            links = session.exec(select(AlbumPhoto).where(AlbumPhoto.album_id == album_id)).all()
            photo_names = {link.photo_name for link in links}
            for link in links:
                session.delete(link)
            for link in session.exec(
                select(AlbumCategory).where(AlbumCategory.album_id == album_id)
            ).all():
                session.delete(link)
            session.flush()

            for photo_name in photo_names:
                self._metadata.detach_from_album(session, user_id, photo_name)
            session.delete(album)

        logger.info(f"Deleted album {album_id} for user {user_id}")
        return True

    def add_photo(self, album_id: int, user_id: str, photo_name: str, photo_url: str = "") -> AlbumPhoto:
        """Link a photo to an album and mark it as used by an album."""
        with transaction(self._engine) as session:
            _owned_album(session, user_id, album_id)

            link = session.exec(
                select(AlbumPhoto)
                .where(AlbumPhoto.album_id == album_id)
                .where(AlbumPhoto.photo_name == photo_name)
            ).first()
            if link is None:
                link = AlbumPhoto(
                    album_id=album_id,
                    user_id=user_id,
                    photo_name=photo_name,
                    photo_url=photo_url,
                )
                session.add(link)
                session.flush()

            moved = self._metadata.attach_to_album(session, user_id, photo_name)

        logger.info(f"Added photo {photo_name} to album {album_id} (status updated: {moved})")
        return link

    def remove_photo(self, album_id: int, user_id: str, photo_name: str) -> bool:
        """Unlink a photo; returns False when it was not in the album."""
        with transaction(self._engine) as session:
            _owned_album(session, user_id, album_id)

            links = session.exec(
                select(AlbumPhoto)
                .where(AlbumPhoto.album_id == album_id)
                .where(AlbumPhoto.user_id == user_id)
                .where(AlbumPhoto.photo_name == photo_name)
            ).all()
            if not links:
                return False
            for link in links:
                session.delete(link)
            session.flush()

            self._metadata.detach_from_album(session, user_id, photo_name)

        logger.info(f"Removed photo {photo_name} from album {album_id}")
        return True

    def batch_add_photos(self, album_id: int, user_id: str, photos: list[AlbumPhotoIn]) -> dict:
        """Add several photos, collecting per-photo failures."""
        self.get_album(album_id, user_id)

        results = {"success": [], "failed": []}
        for photo in photos:
            try:
                results["success"].append(
                    self.add_photo(album_id, user_id, photo.photo_name, photo.photo_url)
                )
            except PhotoLibraryError as e:
                logger.warning(f"Failed to add photo {photo.photo_name} to album {album_id}: {e}")
                results["failed"].append({"photo_name": photo.photo_name, "error": e.message})
        return results

    def album_photos(self, album_id: int, user_id: str) -> list[AlbumPhoto]:
        with Session(self._engine) as session:
            _owned_album(session, user_id, album_id)
            statement = (
                select(AlbumPhoto)
                .where(AlbumPhoto.album_id == album_id)
                .where(AlbumPhoto.user_id == user_id)
                .order_by(col(AlbumPhoto.created_at).desc(), col(AlbumPhoto.id).desc())
            )
            return list(session.exec(statement).all())

    def total_size(self, album_id: int, user_id: str) -> dict:
        """Sum of the sizes recorded for the album's photos."""
        links = self.album_photos(album_id, user_id)
        if not links:
            return {"total_size": 0, "photo_count": 0, "formatted_size": format_bytes(0)}

        names = [link.photo_name for link in links]
        with Session(self._engine) as session:
            rows = session.exec(
                select(PhotoMetadata)
                .where(PhotoMetadata.user_id == user_id)
                .where(
                    col(PhotoMetadata.photo_name).in_(names) | col(PhotoMetadata.photo_id).in_(names)
                )
            ).all()

        sizes = {}
        for row in rows:
            sizes[row.photo_name] = row.size or 0
            sizes[row.photo_id] = row.size or 0
        total = sum(sizes.get(name, 0) for name in names)

        logger.info(f"Album {album_id} total size: {format_bytes(total)} ({len(links)} photos)")
        return {
            "total_size": total,
            "photo_count": len(links),
            "formatted_size": format_bytes(total),
        }
