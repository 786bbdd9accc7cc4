from __future__ import annotations

from typing import Any


class RepositoryError(Exception):
    """Base repository error.

    Carries the failed operation and its identifying parameters so callers can
    diagnose a failure without seeing driver-level text.
    """

    def __init__(self, message: str, *, operation: str | None = None, params: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.operation = operation
        self.params = dict(params or {})


class RepositoryUnavailableError(RepositoryError):
    """Raised when the database is unavailable or not configured."""


class RepositoryNotFoundError(RepositoryError):
    """Raised when the requested entity does not exist."""


class RepositoryConflictError(RepositoryError):
    """Raised when a write violates a storage integrity constraint."""


class RepositoryValidationError(RepositoryError):
    """Raised when an identifier, cursor or payload is malformed."""


class RepositoryInternalError(RepositoryError):
    """Raised when a statement fails for reasons not attributable to input."""


class RepositoryRollbackError(RepositoryInternalError):
    """Raised when rolling back after a failed write also fails."""

    def __init__(
        self,
        message: str,
        *,
        cause: BaseException,
        rollback_error: BaseException,
        operation: str | None = None,
        params: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, operation=operation, params=params)
        self.cause = cause
        self.rollback_error = rollback_error
