"""Album routes."""
from fastapi import APIRouter, Depends, HTTPException

from app.albums.schemas import AlbumCreate, AlbumPhotoIn, AlbumUpdate, BatchAlbumPhotosIn
from app.core.container import AppContainer
from app.routes.deps import get_container, get_user_id

router = APIRouter(prefix="/albums", tags=["albums"])


@router.post("", status_code=201)
def create_album(
    body: AlbumCreate,
    user_id: str = Depends(get_user_id),
    container: AppContainer = Depends(get_container),
):
    album = container.album_service.create_album(user_id, body)
    return {"message": "Album created successfully", "data": album}


@router.get("")
def list_albums(
    user_id: str = Depends(get_user_id),
    container: AppContainer = Depends(get_container),
):
    """The caller's albums, newest first, with their categories."""
    albums = container.album_service.list_albums(user_id)
    return {"message": "Albums with categories retrieved successfully", "data": albums}


@router.get("/{album_id}")
def get_album(
    album_id: int,
    user_id: str = Depends(get_user_id),
    container: AppContainer = Depends(get_container),
):
    album = container.album_service.get_album(album_id, user_id)
    return {"message": "Album retrieved successfully", "data": album}


@router.put("/{album_id}")
def update_album(
    album_id: int,
    body: AlbumUpdate,
    user_id: str = Depends(get_user_id),
    container: AppContainer = Depends(get_container),
):
    """
    Update an album.

    Only the fields present in the body change. Sending ``category_id: null``
    removes the album from its category.
    """
    album = container.album_service.update_album(album_id, user_id, body)
    return {"message": "Album updated successfully", "data": album}


@router.delete("/{album_id}")
def delete_album(
    album_id: int,
    user_id: str = Depends(get_user_id),
    container: AppContainer = Depends(get_container),
):
    """Delete an album. Its photos stay in Drive and return to unsorted."""
    container.album_service.delete_album(album_id, user_id)
    return {"message": "Album deleted successfully"}


@router.post("/{album_id}/photos", status_code=201)
def add_photo(
    album_id: int,
    body: AlbumPhotoIn,
    user_id: str = Depends(get_user_id),
    container: AppContainer = Depends(get_container),
):
    link = container.album_service.add_photo(album_id, user_id, body.photo_name, body.photo_url)
    return {"message": "Photo added to album successfully", "data": link}


@router.post("/{album_id}/photos/batch")
def batch_add_photos(
    album_id: int,
    body: BatchAlbumPhotosIn,
    user_id: str = Depends(get_user_id),
    container: AppContainer = Depends(get_container),
):
    results = container.album_service.batch_add_photos(album_id, user_id, body.photos)
    return {
        "message": (
            f"Added {len(results['success'])} photos to album, "
            f"{len(results['failed'])} failed"
        ),
        "data": results,
    }


@router.get("/{album_id}/photos")
def album_photos(
    album_id: int,
    user_id: str = Depends(get_user_id),
    container: AppContainer = Depends(get_container),
):
    photos = container.album_service.album_photos(album_id, user_id)
    return {"message": f"Found {len(photos)} photos in album", "data": photos}


@router.delete("/{album_id}/photos/{photo_name}")
def remove_photo(
    album_id: int,
    photo_name: str,
    user_id: str = Depends(get_user_id),
    container: AppContainer = Depends(get_container),
):
    if not container.album_service.remove_photo(album_id, user_id, photo_name):
        raise HTTPException(status_code=404, detail="Photo not found in album")
    return {"message": "Photo removed from album successfully"}


@router.get("/{album_id}/categories")
def album_categories(
    album_id: int,
    user_id: str = Depends(get_user_id),
    container: AppContainer = Depends(get_container),
):
    album = container.album_service.get_album(album_id, user_id)
    return {"message": "Album categories retrieved successfully", "data": album["categories"]}


@router.get("/{album_id}/size")
def album_size(
    album_id: int,
    user_id: str = Depends(get_user_id),
    container: AppContainer = Depends(get_container),
):
    """Total size of the album's photos as recorded at upload time."""
    return container.album_service.total_size(album_id, user_id)
