"""Base repository implementation.

Provides common database operations and patterns for all repository classes,
including soft deletion and page-based listing.
"""

import datetime
import logging
from abc import ABC
from typing import Any, Generic, List, Optional, Tuple, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Query, Session

logger = logging.getLogger(__name__)

# Generic type for model classes
ModelType = TypeVar('ModelType')

MAX_PAGE_SIZE = 100


class BaseRepository(Generic[ModelType], ABC):
    """Base repository class with common CRUD operations."""

    def __init__(self, db_session: Session, model_class: type):
        """Initialize repository with database session and model class.

        Args:
            db_session: SQLAlchemy database session
            model_class: SQLAlchemy model class
        """
        self.db = db_session
        self.model_class = model_class

    @property
    def soft_deletes(self) -> bool:
        return hasattr(self.model_class, 'is_deleted')

    def query(self, include_deleted: bool = False) -> Query:
        """Base query, hiding soft-deleted rows unless asked otherwise."""
        query = self.db.query(self.model_class)
        if self.soft_deletes and not include_deleted:
            query = query.filter(self.model_class.is_deleted.is_(False))
        return query

    def create(self, **kwargs) -> ModelType:
        """Create a new record.

        Args:
            **kwargs: Field values for the new record

        Returns:
            Created model instance

        Raises:
            IntegrityError: If database constraints are violated
        """
        return self.add(self.model_class(**kwargs))

    def add(self, instance: ModelType) -> ModelType:
        """Persist an already built instance."""
        try:
            self.db.add(instance)
            self.db.commit()
            self.db.refresh(instance)
            logger.info(f"Created {self.model_class.__name__} with id {instance.id}")
            return instance
        except IntegrityError as e:
            self.db.rollback()
            logger.error(f"Failed to create {self.model_class.__name__}: {e}")
            raise

    def save(self, instance: ModelType) -> ModelType:
        """Commit pending changes made to ``instance``.

        Raises:
            IntegrityError: If database constraints are violated
        """
        try:
            self.db.commit()
            self.db.refresh(instance)
            return instance
        except IntegrityError as e:
            self.db.rollback()
            logger.error(f"Failed to save {self.model_class.__name__} {getattr(instance, 'id', None)}: {e}")
            raise

    def get_by_id(self, id: int, include_deleted: bool = False) -> Optional[ModelType]:
        """Get a record by its ID.

        Args:
            id: Record ID
            include_deleted: Also return soft-deleted rows

        Returns:
            Model instance if found, None otherwise
        """
        return self.query(include_deleted).filter(self.model_class.id == id).first()

    def delete(self, id: int) -> bool:
        """Delete a record, softly when the model supports it.

        Returns:
            True if deleted, False if not found
        """
        instance = self.get_by_id(id)
        if not instance:
            return False

        if self.soft_deletes:
            instance.is_deleted = True
            instance.deleted_at = datetime.datetime.utcnow()
        else:
            self.db.delete(instance)
        self.db.commit()
        logger.info(f"Deleted {self.model_class.__name__} with id {id}")
        return True

    @staticmethod
    def paginate(query: Query, page: int = 1, limit: int = 10) -> Tuple[List[Any], int]:
        """Apply page/limit to ``query``.

        Returns:
            Tuple of (items on the page, total matching rows)
        """
        page = max(1, page)
        limit = max(1, min(limit, MAX_PAGE_SIZE))
        total = query.order_by(None).count()
        items = query.offset((page - 1) * limit).limit(limit).all()
        return items, total
