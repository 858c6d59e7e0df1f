"""
Base Repository Class.

============================================================
PURPOSE
============================================================
Session-injected base for every repository. Translates
SQLAlchemy failures into the repository exception family so
the event service can tell a lost race (stale version,
duplicate vote row) from a real fault.

============================================================
USAGE
============================================================
Repositories never commit. Transactions are owned by the
caller through storage.database.transaction_scope().

============================================================
"""

import logging
from abc import ABC
from typing import Any, Generic, List, Optional, Type, TypeVar

from sqlalchemy.exc import (
    IntegrityError as SQLAlchemyIntegrityError,
    OperationalError,
    SQLAlchemyError,
)
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from storage.models.base import Base
from storage.repositories.exceptions import (
    ConnectionError,
    DuplicateRecordError,
    IntegrityError,
    QueryError,
    StaleRecordError,
)


# Type variable for ORM model
T = TypeVar("T", bound=Base)


class BaseRepository(ABC, Generic[T]):
    """
    Shared plumbing for the group, rule and event repositories.

    Subclasses bind one ORM model and a name used for the
    `repository.<Name>` logger and in error messages:

        class EventRepository(BaseRepository[Event]):
            def __init__(self, session: Session) -> None:
                super().__init__(session, Event, "EventRepository")
    """

    def __init__(
        self,
        session: Session,
        model_class: Type[T],
        repository_name: str
    ) -> None:
        self._session = session
        self._model_class = model_class
        self._repository_name = repository_name
        self._logger = logging.getLogger(f"repository.{repository_name}")

    # =========================================================
    # PROTECTED HELPER METHODS
    # =========================================================

    def _handle_db_error(
        self,
        error: Exception,
        operation: str,
        context: Optional[dict] = None
    ) -> None:
        """
        Handle database errors by wrapping in repository exceptions.

        Args:
            error: The original exception
            operation: Name of the operation that failed
            context: Additional context for logging

        Raises:
            RepositoryException: Always raises appropriate exception
        """
        context = context or {}

        if isinstance(error, StaleDataError):
            self._logger.debug(f"Stale write in {operation}: {error}")
            raise StaleRecordError(
                repository_name=self._repository_name,
                operation=operation,
                original_error=str(error)
            ) from error

        if isinstance(error, SQLAlchemyIntegrityError):
            error_str = str(error).lower()
            if "duplicate" in error_str or "unique" in error_str:
                self._logger.debug(f"Unique constraint hit in {operation}: {error}")
                raise DuplicateRecordError(
                    repository_name=self._repository_name,
                    constraint_field=context.get("field", "unknown"),
                    value=context.get("value", "unknown")
                ) from error

            self._logger.error(
                f"Integrity error in {operation}: {error}",
                extra={"context": context},
            )
            raise IntegrityError(
                repository_name=self._repository_name,
                operation=operation,
                constraint_name="unknown",
                message=str(error)
            ) from error

        self._logger.error(
            f"Database error in {operation}: {error}",
            extra={"context": context},
            exc_info=True
        )

        if isinstance(error, OperationalError):
            raise ConnectionError(
                repository_name=self._repository_name,
                operation=operation,
                original_error=str(error)
            ) from error

        raise QueryError(
            repository_name=self._repository_name,
            operation=operation,
            query_description=operation,
            original_error=str(error)
        ) from error

    def _add(self, entity: T) -> T:
        """
        Add an entity to the session and flush it.

        Args:
            entity: The entity to add

        Returns:
            The added entity
        """
        try:
            self._session.add(entity)
            self._session.flush()
            self._logger.debug(f"Added entity: {entity}")
            return entity
        except SQLAlchemyError as e:
            self._handle_db_error(e, "add", {"entity": str(entity)})
            raise

    def _flush(self, operation: str, context: Optional[dict] = None) -> None:
        """Flush pending changes, wrapping database errors."""
        try:
            self._session.flush()
        except SQLAlchemyError as e:
            self._handle_db_error(e, operation, context)
            raise

    def _get_by_id(self, record_id: Any) -> Optional[T]:
        """
        Get an entity by its primary key.

        Args:
            record_id: The primary key

        Returns:
            The entity or None if not found
        """
        try:
            return self._session.get(self._model_class, record_id)
        except SQLAlchemyError as e:
            self._handle_db_error(e, "get_by_id", {"id": str(record_id)})
            raise

    def _execute_query(self, stmt: Any) -> List[Any]:
        """
        Execute a select statement and return results.

        Args:
            stmt: SQLAlchemy select statement

        Returns:
            List of entities
        """
        try:
            result = self._session.execute(stmt)
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            self._handle_db_error(e, "query")
            raise

    def _execute_scalar(self, stmt: Any) -> Optional[Any]:
        """
        Execute a select statement and return single result.

        Args:
            stmt: SQLAlchemy select statement

        Returns:
            Single entity or None
        """
        try:
            result = self._session.execute(stmt)
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            self._handle_db_error(e, "query_scalar")
            raise

    def _execute_update(self, stmt: Any, operation: str) -> int:
        """
        Execute an UPDATE statement.

        Returns:
            Number of rows matched
        """
        try:
            result = self._session.execute(
                stmt.execution_options(synchronize_session=False)
            )
            return result.rowcount
        except SQLAlchemyError as e:
            self._handle_db_error(e, operation)
            raise
