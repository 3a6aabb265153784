"""Album categories."""
import logging

from sqlalchemy import func
from sqlalchemy.engine import Engine
from sqlmodel import Session, col, select

from app.albums.schemas import CategoryCreate, CategoryUpdate
from app.core.database import transaction
from app.core.errors import NotFound
from app.models import AlbumCategory, Category

logger = logging.getLogger(__name__)


def get_owned_category(session: Session, user_id: str, category_id: int) -> Category:
    category = session.get(Category, category_id)
    if category is None or category.user_id != user_id:
        raise NotFound("Category not found or does not belong to user")
    return category


class CategoryService:
    """CRUD for the categories a user files albums under."""

    def __init__(self, engine: Engine):
        self._engine = engine

    def create_category(self, user_id: str, data: CategoryCreate) -> Category:
        with transaction(self._engine) as session:
            category = Category(user_id=user_id, **data.model_dump())
            session.add(category)
            session.flush()

        logger.info(f"Created category {category.id} for user {user_id}")
        return category

    def list_categories(self, user_id: str) -> list[dict]:
        """Categories with the number of albums filed under each."""
        album_count = func.count(col(AlbumCategory.album_id))
        statement = (
            select(Category, album_count)
            .outerjoin(AlbumCategory, col(AlbumCategory.category_id) == col(Category.id))
            .where(Category.user_id == user_id)
            .group_by(col(Category.id))
            .order_by(col(Category.name))
        )
        with Session(self._engine) as session:
            return [
                {**category.model_dump(), "album_count": count}
                for category, count in session.exec(statement).all()
            ]

    def get_category(self, category_id: int, user_id: str) -> Category:
        with Session(self._engine) as session:
            return get_owned_category(session, user_id, category_id)

    def update_category(self, category_id: int, user_id: str, data: CategoryUpdate) -> Category:
        changes = data.model_dump(exclude_unset=True)
        if not changes:
            raise ValueError("No fields to update")

        with transaction(self._engine) as session:
            category = get_owned_category(session, user_id, category_id)
            for name, value in changes.items():
                setattr(category, name, value)
            session.add(category)

        return category

    def delete_category(self, category_id: int, user_id: str) -> bool:
        """Delete a category; its albums are kept, only the associations go."""
        with transaction(self._engine) as session:
            category = get_owned_category(session, user_id, category_id)
            links = session.exec(
                select(AlbumCategory).where(AlbumCategory.category_id == category_id)
            ).all()
            for link in links:
                session.delete(link)
            session.flush()
            session.delete(category)

        logger.info(f"Deleted category {category_id} for user {user_id}")
        return True
