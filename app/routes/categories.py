"""Category routes."""
from fastapi import APIRouter, Depends

from app.albums.schemas import CategoryCreate, CategoryUpdate
from app.core.container import AppContainer
from app.routes.deps import get_container, get_user_id

router = APIRouter(prefix="/categories", tags=["categories"])


@router.post("", status_code=201)
def create_category(
    body: CategoryCreate,
    user_id: str = Depends(get_user_id),
    container: AppContainer = Depends(get_container),
):
    category = container.category_service.create_category(user_id, body)
    return {"message": "Category created successfully", "data": category}


@router.get("")
def list_categories(
    user_id: str = Depends(get_user_id),
    container: AppContainer = Depends(get_container),
):
    """Categories sorted by name, each with its album count."""
    categories = container.category_service.list_categories(user_id)
    return {"message": "Categories retrieved successfully", "data": categories}


@router.get("/{category_id}")
def get_category(
    category_id: int,
    user_id: str = Depends(get_user_id),
    container: AppContainer = Depends(get_container),
):
    category = container.category_service.get_category(category_id, user_id)
    return {"message": "Category retrieved successfully", "data": category}


@router.put("/{category_id}")
def update_category(
    category_id: int,
    body: CategoryUpdate,
    user_id: str = Depends(get_user_id),
    container: AppContainer = Depends(get_container),
):
    category = container.category_service.update_category(category_id, user_id, body)
    return {"message": "Category updated successfully", "data": category}


@router.post("/{category_id}/delete")
def delete_category(
    category_id: int,
    user_id: str = Depends(get_user_id),
    container: AppContainer = Depends(get_container),
):
    """Delete a category. Albums filed under it are kept."""
    container.category_service.delete_category(category_id, user_id)
    return {"message": "Category deleted successfully"}
