"""Dependency container wiring for the application."""

from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy.engine import Engine

from app.albums.categories import CategoryService
from app.albums.service import AlbumService
from app.core.config import Settings
from app.drive.client import GoogleOAuthClient
from app.drive.storage import DriveStorage
from app.drive.tokens import TokenCache
from app.photos.metadata import PhotoMetadataStore
from app.photos.service import PhotoLifecycleService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    oauth_client: GoogleOAuthClient
    token_cache: TokenCache
    storage: DriveStorage
    metadata: PhotoMetadataStore
    photo_service: PhotoLifecycleService
    album_service: AlbumService
    category_service: CategoryService


def build_container(
    settings: Settings,
    engine: Engine,
    storage: DriveStorage | None = None,
    oauth_client: GoogleOAuthClient | None = None,
) -> AppContainer:
    """Create the default dependency container.

    ``storage`` and ``oauth_client`` may be supplied to swap the Google
    backed implementations, e.g. for tests.
    """
    oauth_client = oauth_client or GoogleOAuthClient(
        client_id=settings.google_drive_client_id,
        client_secret=settings.google_drive_client_secret,
        redirect_uri=settings.google_drive_redirect_uri,
    )
    token_cache = TokenCache(
        engine,
        refresher=oauth_client,
        refresh_window_ms=settings.token_refresh_window_minutes * 60 * 1000,
    )
    storage = storage or DriveStorage(
        folder_name=settings.drive_folder_name,
        timeout=settings.drive_request_timeout_seconds,
    )
    metadata = PhotoMetadataStore(
        engine, album_accepts_library_photos=settings.album_accepts_library_photos
    )
    photo_service = PhotoLifecycleService(
        tokens=token_cache,
        storage=storage,
        metadata=metadata,
        upload_atomic=settings.upload_atomic,
        reconcile_grace=timedelta(minutes=settings.reconcile_grace_minutes),
    )

    return AppContainer(
        settings=settings,
        oauth_client=oauth_client,
        token_cache=token_cache,
        storage=storage,
        metadata=metadata,
        photo_service=photo_service,
        album_service=AlbumService(engine, metadata),
        category_service=CategoryService(engine),
    )
