"""Abstract interfaces for infrastructure abstraction."""

from app.interfaces.approval_repository import IApprovalRepository
from app.interfaces.auth_provider import IAuthProvider
from app.interfaces.milestone_repository import IMilestoneRepository
from app.interfaces.notification_repository import INotificationRepository
from app.interfaces.phase_repository import IPhaseRepository
from app.interfaces.user_directory import IUserDirectory

__all__ = [
    "IApprovalRepository",
    "IAuthProvider",
    "IMilestoneRepository",
    "INotificationRepository",
    "IPhaseRepository",
    "IUserDirectory",
]
