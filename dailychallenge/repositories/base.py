"""
Base repository class for data access layer.

The repository pattern provides:
1. Separation of data access logic from business logic
2. Single place for query logic (easier to maintain)
3. Easier testing (can mock repositories)
4. Dialect-aware upserts (PostgreSQL and SQLite share ON CONFLICT syntax)

Example:
    class EntityRepository(BaseRepository[Entity]):
        def find_by_name(self, entity_type: str, name: str) -> Optional[Entity]:
            return self.where_first(Entity.entity_type == entity_type, Entity.name == name)
"""
from abc import ABC
from typing import TypeVar, Generic, Type, Optional, List, Any, Dict, Sequence

from sqlalchemy import func
from sqlalchemy.engine import CursorResult
from sqlalchemy.orm import Query, Session

T = TypeVar("T")


class BaseRepository(Generic[T], ABC):
    """
    Base repository class providing common data access methods.

    All repositories should extend this class and specify their model type.

    Attributes:
        model_type: The SQLAlchemy model class this repository manages
        db: The database session
    """

    def __init__(self, model_type: Type[T], db: Session):
        self.model_type = model_type
        self.db = db

    # ========================================================================
    # CRUD Operations
    # ========================================================================

    def find_by_id(self, id: Any) -> Optional[T]:
        """Find a single record by primary key."""
        return self.db.get(self.model_type, id)

    def create(self, **kwargs) -> T:
        """
        Create a new record.

        Returns:
            The created record (flushed, not committed)
        """
        instance = self.model_type(**kwargs)
        self.db.add(instance)
        self.db.flush()
        return instance

    # ========================================================================
    # Query Builders
    # ========================================================================

    def query(self) -> Query:
        """Get a new query object for this model."""
        return self.db.query(self.model_type)

    def where(self, *criterion) -> List[T]:
        """Filter records using SQLAlchemy expressions."""
        return self.db.query(self.model_type).filter(*criterion).all()

    def where_first(self, *criterion) -> Optional[T]:
        """Filter records using SQLAlchemy expressions and return first match."""
        return self.db.query(self.model_type).filter(*criterion).first()

    # ========================================================================
    # Existence Checks
    # ========================================================================

    def count(self, *criterion) -> int:
        """Count records matching optional criterion."""
        query = self.db.query(func.count(self.model_type.id))
        if criterion:
            query = query.filter(*criterion)
        return query.scalar() or 0

    # ========================================================================
    # Upserts
    # ========================================================================

    def _dialect_insert(self, model=None):
        dialect = self.db.get_bind().dialect.name
        if dialect == "postgresql":
            from sqlalchemy.dialects.postgresql import insert
        elif dialect == "sqlite":
            from sqlalchemy.dialects.sqlite import insert
        else:
            raise NotImplementedError(f"Upsert not supported for dialect '{dialect}'")
        return insert(model if model is not None else self.model_type)

    def upsert(
        self,
        values: Dict[str, Any],
        conflict_columns: Sequence[str],
        update_columns: Optional[Sequence[str]] = None,
        extra_updates: Optional[Dict[str, Any]] = None,
    ) -> CursorResult:
        """
        INSERT ... ON CONFLICT (conflict_columns) DO UPDATE.

        Args:
            values: Column values for the insert
            conflict_columns: Columns of the unique constraint to upsert on
            update_columns: Columns overwritten from the new values on conflict
                (default: every inserted column except the conflict key)
            extra_updates: Additional SET expressions on conflict, e.g.
                {"change_count": Model.change_count + 1}
        """
        stmt = self._dialect_insert().values(**values)

        if update_columns is None:
            update_columns = [key for key in values if key not in conflict_columns]

        set_ = {column: stmt.excluded[column] for column in update_columns}
        if extra_updates:
            set_.update(extra_updates)

        stmt = stmt.on_conflict_do_update(index_elements=list(conflict_columns), set_=set_)
        return self.db.execute(stmt)

    # ========================================================================
    # Save Operations
    # ========================================================================

    def save(self) -> None:
        """Commit pending changes to the database."""
        self.db.commit()

    def flush(self) -> None:
        """Flush pending changes without committing."""
        self.db.flush()

    def rollback(self) -> None:
        """Rollback pending changes."""
        self.db.rollback()
