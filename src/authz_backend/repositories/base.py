"""
Base repository pattern implementation.

Stores of the authorization core build on this class for their point lookups
and for committing writes with consistent rollback handling.
"""

from abc import ABC
from typing import TypeVar, Generic, Optional, Dict, Any, Type
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy import inspect

# Type variable for generic entity type
T = TypeVar('T')


class RepositoryError(Exception):
    """Base exception for repository operations."""
    pass


class NotFoundError(RepositoryError):
    """Exception raised when entity is not found."""
    
    def __init__(self, entity_type: str, entity_id: Any):
        super().__init__(f"{entity_type} with id {entity_id} not found")
        self.entity_type = entity_type
        self.entity_id = entity_id


class DuplicateError(RepositoryError):
    """Exception raised when attempting to create duplicate entity."""
    
    def __init__(self, entity_type: str, criteria: Dict[str, Any]):
        super().__init__(f"{entity_type} already exists with criteria: {criteria}")
        self.entity_type = entity_type
        self.criteria = criteria


class BaseRepository(ABC, Generic[T]):
    """
    Abstract base repository providing common database operations.
    
    Reads let SQLAlchemy errors propagate unchanged. Writes roll the session
    back and raise a RepositoryError.
    """
    
    def __init__(self, db: Session, model: Type[T]):
        """
        Initialize repository with database session and model class.
        
        Args:
            db: SQLAlchemy database session
            model: SQLAlchemy model class
        """
        self.db = db
        self.model = model
    
    def get_by_id(self, entity_id: Any) -> T:
        """
        Get entity by ID.
        
        Raises:
            NotFoundError: If entity not found
        """
        entity = self.get_by_id_optional(entity_id)
        if entity is None:
            raise NotFoundError(self.model.__name__, entity_id)
        return entity
    
    def get_by_id_optional(self, entity_id: Any) -> Optional[T]:
        return self.db.query(self.model).filter(
            self.model.id == entity_id
        ).first()
    
    def create(self, entity: T) -> T:
        """
        Create a new entity.
        
        Raises:
            DuplicateError: If entity violates unique constraints
            RepositoryError: If database operation fails
        """
        try:
            self.db.add(entity)
            self.db.commit()
            self.db.refresh(entity)
            return entity
        except IntegrityError:
            self.db.rollback()
            raise DuplicateError(
                self.model.__name__,
                self._extract_entity_dict(entity)
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            raise RepositoryError(f"Failed to create {self.model.__name__}: {str(e)}")
    
    def commit(self, action: str):
        """Commit pending changes, rolling back on failure"""
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise RepositoryError(f"Failed to {action} {self.model.__name__}: integrity violation: {e.orig}")
        except SQLAlchemyError as e:
            self.db.rollback()
            raise RepositoryError(f"Failed to {action} {self.model.__name__}: {str(e)}")
    
    def _extract_entity_dict(self, entity: T) -> Dict[str, Any]:
        """Column values of an entity, for error messages"""
        mapper = inspect(type(entity))
        return {
            column.key: getattr(entity, column.key, None)
            for column in mapper.column_attrs
            if column.key not in ("created_at", "updated_at")
        }
