"""Domain-specific exceptions for the Storefront API."""

from typing import Any


class StorefrontError(Exception):
    """Base exception for all Storefront API errors."""

    status_code = 500

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(StorefrontError):
    """Error related to input validation (not Pydantic)."""

    status_code = 400

    def __init__(self, message: str = "Validation failed", errors: list[Any] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []


class AuthenticationError(StorefrontError):
    """Missing, invalid or expired credentials."""

    status_code = 401


class AuthorizationError(StorefrontError):
    """Authenticated, but the role is not allowed."""

    status_code = 403


class NotFoundError(StorefrontError):
    status_code = 404


class ConflictError(StorefrontError):
    status_code = 409


class ConfigurationError(StorefrontError):
    """Error related to configuration issues."""


class DatabaseError(StorefrontError):
    """Error related to database operations."""

    sqlstate: str | None = None


class DuplicateEntryError(DatabaseError):
    status_code = 409
    sqlstate = "23505"

    def __init__(self, message: str = "Duplicate entry. This record already exists.") -> None:
        super().__init__(message)


class ForeignKeyError(DatabaseError):
    status_code = 400
    sqlstate = "23503"

    def __init__(self, message: str = "Referenced record does not exist.") -> None:
        super().__init__(message)


class MissingTableError(DatabaseError):
    sqlstate = "42P01"

    def __init__(self, message: str = "Database table not found. Please run migrations.") -> None:
        super().__init__(message)


class QueryTimeoutError(DatabaseError):
    status_code = 504

    def __init__(self, message: str = "Query execution timeout") -> None:
        super().__init__(message)
