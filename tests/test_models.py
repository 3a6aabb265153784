"""Tests for database models."""

from datetime import UTC, datetime

import pytest
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from app.models import Album, AlbumPhoto, DriveToken, PhotoMetadata, PhotoStatus


class TestDriveTokenModel:
    """Tests for the DriveToken model."""

    def test_create_token(self, session: Session):
        """Test storing tokens with a millisecond expiry."""
        token = DriveToken(user_id="u1", access_token="abc", expiry=1_900_000_000_000)
        session.add(token)
        session.commit()

        retrieved = session.exec(select(DriveToken).where(DriveToken.user_id == "u1")).first()

        assert retrieved is not None
        assert retrieved.expiry == 1_900_000_000_000
        assert retrieved.token_type == "Bearer"
        assert retrieved.refresh_token is None

    def test_one_token_row_per_user(self, session: Session):
        """Test that user_id must be unique."""
        session.add(DriveToken(user_id="u1", access_token="a"))
        session.commit()

        session.add(DriveToken(user_id="u1", access_token="b"))
        with pytest.raises(IntegrityError):
            session.commit()


class TestPhotoMetadataModel:
    """Tests for the PhotoMetadata model."""

    def test_defaults_to_unsorted(self, session: Session):
        """Test new photos start unsorted."""
        photo = PhotoMetadata(user_id="u1", photo_id="f1", photo_name="a.jpg", photo_url="url")
        session.add(photo)
        session.commit()
        session.refresh(photo)

        assert photo.status == PhotoStatus.UNSORTED
        assert photo.moved_to_library_at is None

    def test_photo_id_unique_per_user(self, session: Session):
        """Test the same Drive file cannot be recorded twice for one user."""
        session.add(PhotoMetadata(user_id="u1", photo_id="f1", photo_name="a.jpg", photo_url="url"))
        session.add(PhotoMetadata(user_id="u2", photo_id="f1", photo_name="a.jpg", photo_url="url"))
        session.commit()

        session.add(PhotoMetadata(user_id="u1", photo_id="f1", photo_name="b.jpg", photo_url="url"))
        with pytest.raises(IntegrityError):
            session.commit()

    def test_effective_date_prefers_creation_time(self):
        """Test the timeline date falls back from creation to move time."""
        created = datetime(2024, 1, 5, tzinfo=UTC)
        moved = datetime(2024, 2, 1, tzinfo=UTC)

        photo = PhotoMetadata(
            user_id="u1", photo_id="f1", photo_name="a.jpg", photo_url="url",
            created_time=created, moved_to_library_at=moved,
        )
        assert photo.effective_date == created

        photo.created_time = None
        assert photo.effective_date == moved

        photo.moved_to_library_at = None
        assert photo.effective_date == photo.created_at


class TestAlbumModel:
    """Tests for the Album and AlbumPhoto models."""

    def test_album_with_photo(self, session: Session):
        """Test linking a photo to an album."""
        album = Album(user_id="u1", title="Trip", hexcolor="#123456", year=2024)
        session.add(album)
        session.commit()
        session.refresh(album)

        session.add(AlbumPhoto(album_id=album.id, user_id="u1", photo_name="a.jpg", photo_url="url"))
        session.commit()

        links = session.exec(select(AlbumPhoto).where(AlbumPhoto.album_id == album.id)).all()
        assert [link.photo_name for link in links] == ["a.jpg"]
        assert album.coverimage is None
