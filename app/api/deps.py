"""
Dependency injection for API endpoints.

This module provides FastAPI dependencies that inject the correct
infrastructure implementations based on environment configuration.
"""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status

from app.core.config import get_settings
from app.core.exceptions import AuthenticationError
from app.interfaces.approval_repository import IApprovalRepository
from app.interfaces.auth_provider import IAuthProvider, User
from app.interfaces.milestone_repository import IMilestoneRepository
from app.interfaces.notification_repository import INotificationRepository
from app.interfaces.phase_repository import IPhaseRepository
from app.interfaces.user_directory import IUserDirectory
from app.services.approval_service import ApprovalService


# ===========================================
# Repository Dependencies
# ===========================================


@lru_cache()
def get_phase_repository() -> IPhaseRepository:
    """Get phase repository instance."""
    from app.infrastructure.local.phase_repository import SqlitePhaseRepository
    return SqlitePhaseRepository()


@lru_cache()
def get_milestone_repository() -> IMilestoneRepository:
    """Get milestone repository instance."""
    from app.infrastructure.local.milestone_repository import SqliteMilestoneRepository
    return SqliteMilestoneRepository()


@lru_cache()
def get_approval_repository() -> IApprovalRepository:
    """Get milestone approval repository instance."""
    from app.infrastructure.local.approval_repository import SqliteApprovalRepository
    return SqliteApprovalRepository()


@lru_cache()
def get_user_directory() -> IUserDirectory:
    """Get user directory instance."""
    from app.infrastructure.local.user_directory import SqliteUserDirectory
    return SqliteUserDirectory()


@lru_cache()
def get_notification_repository() -> INotificationRepository:
    """Get notification repository instance."""
    from app.infrastructure.local.notification_repository import SqliteNotificationRepository
    return SqliteNotificationRepository()


# ===========================================
# Service Dependencies
# ===========================================


def get_approval_service(
    approval_repo: IApprovalRepository = Depends(get_approval_repository),
    milestone_repo: IMilestoneRepository = Depends(get_milestone_repository),
    user_directory: IUserDirectory = Depends(get_user_directory),
    notification_repo: INotificationRepository = Depends(get_notification_repository),
) -> ApprovalService:
    """Get approval service wired to the configured repositories."""
    return ApprovalService(approval_repo, milestone_repo, user_directory, notification_repo)


# ===========================================
# User Authentication
# ===========================================


@lru_cache()
def get_auth_provider() -> IAuthProvider:
    """Get auth provider instance."""
    settings = get_settings()
    from app.infrastructure.local.mock_auth import MockAuthProvider
    return MockAuthProvider(enabled=settings.AUTH_REQUIRED)


async def get_current_user(
    authorization: Annotated[str | None, Header()] = None,
    auth_provider: IAuthProvider = Depends(get_auth_provider),
) -> User:
    """
    Get current authenticated user.

    A bearer token is always honoured when present. Without one, the
    development user is returned unless authentication is required.
    """
    if not authorization:
        if not auth_provider.is_enabled():
            # Mock user for development
            return User(id="dev_user", email="dev@example.com", display_name="Developer")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header required",
        )

    # Extract token from "Bearer <token>"
    try:
        scheme, token = authorization.split()
        if scheme.lower() != "bearer":
            raise ValueError("Invalid scheme")
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header format",
        )

    try:
        return await auth_provider.verify_token(token)
    except AuthenticationError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.message,
        )


# ===========================================
# Type Aliases for Dependency Injection
# ===========================================

PhaseRepo = Annotated[IPhaseRepository, Depends(get_phase_repository)]
MilestoneRepo = Annotated[IMilestoneRepository, Depends(get_milestone_repository)]
ApprovalRepo = Annotated[IApprovalRepository, Depends(get_approval_repository)]
UserDirectory = Annotated[IUserDirectory, Depends(get_user_directory)]
NotificationRepo = Annotated[INotificationRepository, Depends(get_notification_repository)]
ApprovalSvc = Annotated[ApprovalService, Depends(get_approval_service)]
CurrentUser = Annotated[User, Depends(get_current_user)]
