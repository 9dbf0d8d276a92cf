# backend/rentitforward/repositories/base_repository.py
"""
Generic data access shared by every repository.

Repositories flush but never commit; the service layer owns the
transaction boundary. SQLAlchemy errors surface as RepositoryException,
except where a subclass needs the raw IntegrityError to detect a clash.
"""

import logging
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Query, Session

from ..core.exceptions import RepositoryException

# Type variable for generic model support
T = TypeVar("T")

logger = logging.getLogger(__name__)


class BaseRepository(Generic[T]):
    """
    Concrete base repository implementation with common data access patterns.

    Attributes:
        db: SQLAlchemy session
        model: SQLAlchemy model class
    """

    def __init__(self, db: Session, model: Type[T]):
        """
        Initialize repository with database session and model.

        Args:
            db: SQLAlchemy session (managed by service layer)
            model: SQLAlchemy model class
        """
        self.db = db
        self.model = model
        self.logger = logging.getLogger(f"{__name__}.{model.__name__}")

    def get_by_id(self, id: str, load_relationships: bool = True) -> Optional[T]:
        """
        Retrieve an entity by its primary key.

        Implements eager loading for relationships when requested.
        """
        try:
            query = self.db.query(self.model).filter(self.model.id == id)  # type: ignore[attr-defined]

            if load_relationships:
                query = self._apply_eager_loading(query)

            return query.first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting {self.model.__name__} by id {id}: {str(e)}")
            raise RepositoryException(f"Failed to retrieve {self.model.__name__}: {str(e)}")

    def create(self, **kwargs: Any) -> T:
        """
        Create a new entity.

        Note: Does NOT commit - transaction management is handled by service layer.
        """
        try:
            entity = self.model(**kwargs)
            self.db.add(entity)
            self.db.flush()  # Get ID without committing
            return entity
        except IntegrityError as exc:
            self.logger.error(
                "Integrity error creating %s: %s", self.model.__name__, exc, exc_info=True
            )
            self.db.rollback()
            raise RepositoryException(f"Integrity constraint violated: {exc}") from exc
        except SQLAlchemyError as e:
            self.logger.error(f"Error creating {self.model.__name__}: {str(e)}")
            self.db.rollback()
            raise RepositoryException(f"Failed to create {self.model.__name__}: {str(e)}")

    def delete(self, id: str) -> bool:
        """
        Delete an entity by its primary key.

        Returns False if entity not found, raises exception for constraint violations.
        """
        try:
            entity = self.get_by_id(id, load_relationships=False)
            if not entity:
                return False

            self.db.delete(entity)
            self.db.flush()
            return True
        except IntegrityError as e:
            self.logger.error(
                f"Cannot delete {self.model.__name__} {id} due to constraints: {str(e)}"
            )
            self.db.rollback()
            raise RepositoryException(f"Cannot delete due to existing references: {str(e)}")
        except SQLAlchemyError as e:
            self.logger.error(f"Error deleting {self.model.__name__} {id}: {str(e)}")
            self.db.rollback()
            raise RepositoryException(f"Failed to delete {self.model.__name__}: {str(e)}")

    def exists(self, **kwargs: Any) -> bool:
        """Check if an entity exists with given criteria."""
        try:
            return self.db.query(self.model).filter_by(**kwargs).first() is not None
        except SQLAlchemyError as e:
            self.logger.error(f"Error checking existence: {str(e)}")
            raise RepositoryException(f"Failed to check existence: {str(e)}")

    def find_by(self, **kwargs: Any) -> List[T]:
        """
        Find entities by given criteria.

        Args:
            **kwargs: Filter criteria (exact match)

        Returns:
            List of matching entities
        """
        try:
            return self.db.query(self.model).filter_by(**kwargs).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error finding by criteria: {str(e)}")
            raise RepositoryException(f"Failed to find records: {str(e)}")

    def find_one_by(self, **kwargs: Any) -> Optional[T]:
        """Find a single entity by given criteria, or None."""
        try:
            return self.db.query(self.model).filter_by(**kwargs).first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error finding one by criteria: {str(e)}")
            raise RepositoryException(f"Failed to find record: {str(e)}")

    def bulk_create(self, entities: List[Dict[str, Any]]) -> List[T]:
        """
        Create multiple entities in a single flush.

        IntegrityError is re-raised untouched so callers can map constraint
        violations to domain conflicts.
        """
        try:
            db_entities = [self.model(**data) for data in entities]
            self.db.add_all(db_entities)
            self.db.flush()
            return db_entities
        except IntegrityError:
            raise
        except SQLAlchemyError as e:
            self.logger.error(f"Error bulk creating: {str(e)}")
            raise RepositoryException(f"Failed to bulk create: {str(e)}")

    # Protected helper methods for use by subclasses

    def _apply_eager_loading(self, query: Query) -> Query:
        """
        Apply eager loading to relationships.

        Override in subclasses to specify which relationships to load.
        """
        return query
