"""Photo routes: upload, listing, curation moves and deletion."""
import logging

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from pydantic import BaseModel, Field

from app.core.container import AppContainer
from app.models import PhotoStatus
from app.photos.service import PhotoUpload
from app.routes.deps import get_container, get_user_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/photos", tags=["photos"])


class PhotoIds(BaseModel):
    photo_ids: list[str] = Field(min_length=1)


class PhotoUrl(BaseModel):
    photo_url: str = Field(min_length=1)


class PhotoNames(BaseModel):
    photo_names: list[str] = Field(min_length=1)


def read_uploads(files: list[UploadFile], max_files: int, max_bytes: int) -> list[PhotoUpload]:
    """Validate the multipart files and read them into memory."""
    if not files:
        raise HTTPException(status_code=400, detail="No files uploaded")
    if len(files) > max_files:
        raise HTTPException(status_code=400, detail=f"At most {max_files} files per upload")

    uploads = []
    for file in files:
        content_type = file.content_type or ""
        if not content_type.startswith("image/"):
            raise HTTPException(status_code=400, detail=f"Only image files are allowed: {file.filename}")
        content = file.file.read(max_bytes + 1)
        if len(content) > max_bytes:
            raise HTTPException(status_code=413, detail=f"File too large: {file.filename}")
        uploads.append(PhotoUpload(filename=file.filename or "photo", content=content, mime_type=content_type))
    return uploads


@router.post("/upload")
def upload_photos(
    photos: list[UploadFile] = File(...),
    user_id: str = Depends(get_user_id),
    container: AppContainer = Depends(get_container),
):
    """
    Upload photos to the caller's Google Drive.

    Every photo starts out unsorted. If any file fails, the whole request
    fails with an error naming that file.
    """
    settings = container.settings
    uploads = read_uploads(photos, settings.max_upload_files, settings.max_upload_bytes)
    uploaded = container.photo_service.upload(uploads, user_id)
    return {
        "message": f"Successfully uploaded {len(uploaded)} photo(s)",
        "photos": uploaded,
    }


@router.get("")
def list_drive_photos(
    user_id: str = Depends(get_user_id),
    container: AppContainer = Depends(get_container),
):
    """All photos in the caller's Drive folder, newest first."""
    return container.photo_service.list_drive_photos(user_id)


@router.get("/unsorted")
def list_unsorted(
    user_id: str = Depends(get_user_id),
    container: AppContainer = Depends(get_container),
):
    photos = container.photo_service.list_photos(user_id, PhotoStatus.UNSORTED)
    return {"message": f"Found {len(photos)} unsorted photos", "data": photos}


@router.get("/library")
def list_library(
    user_id: str = Depends(get_user_id),
    container: AppContainer = Depends(get_container),
):
    """Library photos grouped as year -> month -> day."""
    grouped = container.photo_service.list_photos(user_id, PhotoStatus.LIBRARY)
    return {"message": "Library photos organized by date", "data": grouped}


@router.post("/move-to-library")
def move_to_library(
    body: PhotoIds,
    user_id: str = Depends(get_user_id),
    container: AppContainer = Depends(get_container),
):
    moved = container.photo_service.move_to_library(user_id, body.photo_ids)
    return {"message": f"Successfully moved {moved} photos to library", "moved": moved}


@router.post("/move-to-unsorted")
def move_to_unsorted(
    body: PhotoIds,
    user_id: str = Depends(get_user_id),
    container: AppContainer = Depends(get_container),
):
    moved = container.photo_service.move_to_unsorted(user_id, body.photo_ids)
    return {"message": f"Successfully moved {moved} photos back to unsorted", "moved": moved}


@router.post("/delete-by-url")
def delete_by_url(
    body: PhotoUrl,
    user_id: str = Depends(get_user_id),
    container: AppContainer = Depends(get_container),
):
    if not container.photo_service.delete_by_url(user_id, body.photo_url):
        raise HTTPException(status_code=404, detail="Photo not found")
    return {"message": "Photo deleted successfully"}


@router.post("/delete/{identifier}")
def delete_photo(
    identifier: str,
    user_id: str = Depends(get_user_id),
    container: AppContainer = Depends(get_container),
):
    """
    Delete one photo from Drive and from the library.

    ``identifier`` may be the Drive file id, the stored file name, or a
    fragment of the name; the first match wins.
    """
    if not container.photo_service.delete(user_id, identifier):
        raise HTTPException(status_code=404, detail="Photo not found")
    return {"message": "Photo deleted successfully"}


@router.post("/batch-delete")
def batch_delete(
    body: PhotoNames,
    user_id: str = Depends(get_user_id),
    container: AppContainer = Depends(get_container),
):
    """Delete several photos; failures are reported per item."""
    result = container.photo_service.batch_delete(user_id, body.photo_names)
    return {
        "message": (
            f"Batch delete completed. Success: {len(result.success)}, "
            f"Failed: {len(result.failed)}"
        ),
        "results": result.as_dict(),
    }


@router.post("/reconcile")
def reconcile(
    user_id: str = Depends(get_user_id),
    container: AppContainer = Depends(get_container),
):
    """Repair differences between the caller's Drive folder and the library."""
    return container.photo_service.reconcile(user_id)
