"""
Repository Layer Exceptions.

============================================================
PURPOSE
============================================================
Failures raised by the repository layer. No raw SQLAlchemy
error leaves a repository method.

============================================================
USAGE
============================================================
BaseRepository._handle_db_error() performs the translation.

The event service maps DuplicateRecordError and StaleRecordError
to a retry of the whole vote; other repository errors propagate.

============================================================
"""

from typing import Any, Optional


class RepositoryException(Exception):
    """Base for repository failures; message is prefixed with repository and operation."""

    def __init__(
        self,
        message: str,
        repository_name: str,
        operation: str,
        details: Optional[dict] = None
    ) -> None:
        self.message = message
        self.repository_name = repository_name
        self.operation = operation
        self.details = details or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        return f"[{self.repository_name}] {self.operation}: {self.message}"


class DuplicateRecordError(RepositoryException):
    """
    A unique key rejected the write.

    Raised for a second roster entry of the same user and for a
    second vote row of the same voter on one event.
    """

    def __init__(
        self,
        repository_name: str,
        constraint_field: str,
        value: Any
    ) -> None:
        super().__init__(
            message=f"Duplicate record: {constraint_field}={value} already exists",
            repository_name=repository_name,
            operation="create",
            details={"field": constraint_field, "value": str(value)}
        )
        self.constraint_field = constraint_field
        self.value = value


class StaleRecordError(RepositoryException):
    """
    Raised when a versioned row changed since it was loaded.

    The caller lost an optimistic-locking race and may retry
    from a fresh read.
    """

    def __init__(
        self,
        repository_name: str,
        operation: str,
        original_error: str
    ) -> None:
        super().__init__(
            message=f"Stale write: {original_error}",
            repository_name=repository_name,
            operation=operation,
            details={"original_error": original_error}
        )


class IntegrityError(RepositoryException):
    """A non-unique constraint rejected the write (e.g. rule point range)."""

    def __init__(
        self,
        repository_name: str,
        operation: str,
        constraint_name: str,
        message: str
    ) -> None:
        super().__init__(
            message=f"Integrity constraint violated ({constraint_name}): {message}",
            repository_name=repository_name,
            operation=operation,
            details={"constraint": constraint_name}
        )
        self.constraint_name = constraint_name


class ConnectionError(RepositoryException):
    """
    Raised when database connection fails.

    Use for connection timeouts, pool exhaustion, etc.
    """

    def __init__(
        self,
        repository_name: str,
        operation: str,
        original_error: str
    ) -> None:
        super().__init__(
            message=f"Database connection failed: {original_error}",
            repository_name=repository_name,
            operation=operation,
            details={"original_error": original_error}
        )


class QueryError(RepositoryException):
    """
    Raised when a query execution fails.

    Use for syntax errors, invalid parameters, etc.
    """

    def __init__(
        self,
        repository_name: str,
        operation: str,
        query_description: str,
        original_error: str
    ) -> None:
        super().__init__(
            message=f"Query failed ({query_description}): {original_error}",
            repository_name=repository_name,
            operation=operation,
            details={
                "query_description": query_description,
                "original_error": original_error
            }
        )
