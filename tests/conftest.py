"""Shared test fixtures."""

from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from google.auth.exceptions import RefreshError
from sqlmodel import Session, SQLModel, create_engine
from sqlmodel.pool import StaticPool

from app.core.config import Settings
from app.core.container import build_container
from app.core.errors import StorageAuthError, StorageError
from app.drive.storage import DriveFile, DriveStorage, public_url, thumbnail_url
from app.drive.tokens import TokenBundle, now_ms
from app.main import app
from app.models import PhotoMetadata, PhotoStatus
from app.routes.deps import get_container

USER_ID = "user-1"
OTHER_USER_ID = "user-2"


class FakeDriveStorage(DriveStorage):
    """In-memory Drive folder. Inherits batch_delete from the real adapter."""

    def __init__(self):
        super().__init__(folder_name="PhotoApp", timeout=1, service_factory=None)
        self.files: dict[str, DriveFile] = {}
        self.fail_uploads: set[str] = set()
        self.fail_deletes: set[str] = set()
        self.reject_deletes: set[str] = set()
        self.valid = True
        self._counter = 0

    def ensure_user_folder(self, tokens, user_id):
        return f"folder-{user_id}"

    def upload(self, tokens, file_name, data, mime_type, folder_id=None, user_id=""):
        if any(file_name.endswith(name) for name in self.fail_uploads):
            raise StorageError("quota exceeded")
        self._counter += 1
        file_id = f"file-{self._counter}"
        drive_file = DriveFile(
            id=file_id,
            name=file_name,
            public_url=public_url(file_id),
            thumbnail_url=thumbnail_url(file_id),
            created_time=datetime.now(UTC) + timedelta(seconds=self._counter),
            size=len(data),
        )
        self.files[file_id] = drive_file
        return drive_file

    def add_existing(self, name: str, created_time: datetime, size: int = 100) -> DriveFile:
        """Put a file into the folder without going through the service."""
        self._counter += 1
        file_id = f"file-{self._counter}"
        drive_file = DriveFile(
            id=file_id,
            name=name,
            public_url=public_url(file_id),
            thumbnail_url=thumbnail_url(file_id),
            created_time=created_time,
            size=size,
        )
        self.files[file_id] = drive_file
        return drive_file

    def list_photos(self, tokens, user_id="", make_public=True):
        return sorted(self.files.values(), key=lambda f: f.created_time, reverse=True)

    def delete(self, tokens, file_id):
        if file_id in self.reject_deletes:
            raise StorageAuthError()
        if file_id in self.fail_deletes:
            raise StorageError(f"Failed to delete {file_id}: backend error")
        self.files.pop(file_id, None)
        return True

    def storage_usage(self, tokens):
        return {"used": sum(f.size or 0 for f in self.files.values()), "total": 1000}

    def validate_tokens(self, tokens):
        return self.valid


class FakeOAuthClient:
    """Token endpoint double that issues numbered access tokens."""

    def __init__(self):
        self.refresh_calls = 0
        self.fail_refresh = False

    def authorization_url(self):
        return "https://accounts.google.com/o/oauth2/auth?client_id=test"

    def exchange_code(self, code):
        if code == "bad-code":
            raise ValueError("invalid_grant")
        return TokenBundle(
            access_token=f"access-{code}",
            refresh_token=f"refresh-{code}",
            expiry=now_ms() + 3600 * 1000,
        )

    def refresh(self, refresh_token):
        if self.fail_refresh:
            raise RefreshError("invalid_grant: Token has been expired or revoked.")
        self.refresh_calls += 1
        return TokenBundle(
            access_token=f"refreshed-{self.refresh_calls}",
            expiry=now_ms() + 3600 * 1000,
        )


@pytest.fixture(name="engine")
def engine_fixture():
    """Create an in-memory SQLite database for testing."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="session")
def session_fixture(engine):
    """Create a new database session for each test."""
    with Session(engine) as session:
        yield session


@pytest.fixture(name="settings")
def settings_fixture() -> Settings:
    return Settings(
        database_url="sqlite://",
        reconcile_interval_minutes=0,
        token_refresh_interval_minutes=0,
    )


@pytest.fixture(name="storage")
def storage_fixture() -> FakeDriveStorage:
    return FakeDriveStorage()


@pytest.fixture(name="oauth")
def oauth_fixture() -> FakeOAuthClient:
    return FakeOAuthClient()


@pytest.fixture(name="container")
def container_fixture(settings, engine, storage, oauth):
    """Application container backed by the test database and fakes."""
    return build_container(settings, engine, storage=storage, oauth_client=oauth)


@pytest.fixture(name="connected_user")
def connected_user_fixture(container) -> str:
    """A user with fresh Google Drive tokens on file."""
    container.token_cache.save(
        USER_ID,
        TokenBundle(
            access_token="access-1",
            refresh_token="refresh-1",
            expiry=now_ms() + 3600 * 1000,
        ),
    )
    return USER_ID


@pytest.fixture(name="client")
def client_fixture(container):
    """Create a test client wired to the test container."""
    app.dependency_overrides[get_container] = lambda: container
    client = TestClient(app, headers={"X-User-Id": USER_ID})
    yield client
    app.dependency_overrides.clear()


@pytest.fixture(name="make_photo")
def make_photo_fixture(session: Session):
    """Insert a photo metadata row directly."""

    def make_photo(
        name: str = "photo.jpg",
        status: PhotoStatus = PhotoStatus.UNSORTED,
        user_id: str = USER_ID,
        created_time: datetime | None = None,
        size: int | None = 100,
    ) -> PhotoMetadata:
        photo_id = f"drive-{uuid4().hex[:8]}"
        photo = PhotoMetadata(
            user_id=user_id,
            photo_id=photo_id,
            photo_name=name,
            photo_url=public_url(photo_id),
            status=status.value,
            size=size,
            created_time=created_time,
        )
        session.add(photo)
        session.commit()
        session.refresh(photo)
        return photo

    return make_photo
