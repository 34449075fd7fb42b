"""
Base repository class with common database operations.

Repositories wrap a synchronous SQLAlchemy session owned by the caller; they
flush but never commit, so the task decides where the transaction ends.
"""
from typing import Any, Generic, Sequence, Type, TypeVar

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from mtg_ingest.db.base import Base

# Type variable for generic repository
ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Base repository implementing common database operations.

    Usage:
        class CommanderRepository(BaseRepository[Commander]):
            def __init__(self, db: Session):
                super().__init__(Commander, db)

            def get_by_name(self, name: str) -> Commander | None:
                return self.find_one_by(name=name)
    """

    def __init__(self, model: Type[ModelType], db: Session):
        """
        Initialize the repository.

        Args:
            model: SQLAlchemy model class this repository manages
            db: Database session
        """
        self.model = model
        self.db = db

    def get_by_id(self, id: int) -> ModelType | None:
        """
        Get a single record by its primary key.

        Args:
            id: Primary key value

        Returns:
            Model instance or None if not found
        """
        return self.db.get(self.model, id)

    def _filtered(self, query, **kwargs: Any):
        for key, value in kwargs.items():
            if hasattr(self.model, key):
                query = query.where(getattr(self.model, key) == value)
        return query

    def find_one_by(self, **kwargs: Any) -> ModelType | None:
        """Find a single record by arbitrary column values."""
        result = self.db.execute(self._filtered(select(self.model), **kwargs))
        return result.scalar_one_or_none()

    def find_by(
        self,
        *,
        skip: int = 0,
        limit: int = 100,
        **kwargs: Any,
    ) -> Sequence[ModelType]:
        """
        Find records by arbitrary column values.

        Args:
            skip: Number of records to skip
            limit: Maximum records to return
            **kwargs: Column name/value pairs to filter by

        Returns:
            Sequence of model instances, ordered by id
        """
        query = self._filtered(select(self.model), **kwargs)
        query = query.order_by(self.model.id).offset(skip).limit(limit)
        return self.db.execute(query).scalars().all()

    def count(self, **kwargs: Any) -> int:
        """Count records, optionally filtered by column values."""
        query = self._filtered(select(func.count()).select_from(self.model), **kwargs)
        return self.db.execute(query).scalar() or 0

    def exists(self, **kwargs: Any) -> bool:
        return self.count(**kwargs) > 0

    def create(self, **kwargs: Any) -> ModelType:
        """
        Create a new record and flush it so it has an id.

        Args:
            **kwargs: Column name/value pairs for the new record

        Returns:
            Created model instance
        """
        instance = self.model(**kwargs)
        self.db.add(instance)
        self.db.flush()
        return instance
