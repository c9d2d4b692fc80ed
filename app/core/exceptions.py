"""
Custom exceptions for the application.
"""

from typing import Any, Optional


class ProjectHubError(Exception):
    """Base exception for Project Hub."""

    def __init__(self, message: str, details: Optional[Any] = None):
        self.message = message
        self.details = details
        super().__init__(message)


class NotFoundError(ProjectHubError):
    """Resource not found."""

    pass


class ValidationError(ProjectHubError):
    """Malformed or missing input. Details carry field-level errors."""

    pass


class PreconditionError(ProjectHubError):
    """
    Operation not allowed in the current state.

    Acting out of turn, acting on a closed workflow, voting twice,
    missing role eligibility.
    """

    pass


class ConcurrencyConflictError(ProjectHubError):
    """Optimistic-lock mismatch: the document changed since it was read."""

    def __init__(self, message: str, expected_version: Optional[int] = None):
        super().__init__(message, details={"expected_version": expected_version})
        self.expected_version = expected_version


class AuthenticationError(ProjectHubError):
    """Authentication failed."""

    pass


class AuthorizationError(ProjectHubError):
    """Authorization failed."""

    pass


class ForbiddenError(AuthorizationError):
    """Forbidden operation (authorization denied)."""

    pass


class InfrastructureError(ProjectHubError):
    """Infrastructure-related error (DB, external services, etc.)."""

    pass


class PersistenceError(InfrastructureError):
    """Storage layer unavailable after retries."""

    pass
