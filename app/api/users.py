"""
User directory endpoints.

Accounts are managed elsewhere; these endpoints maintain the roles the
approval workflow routes on.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field

from app.api.deps import CurrentUser, UserDirectory
from app.core.config import get_settings
from app.core.exceptions import ForbiddenError
from app.models.user import DirectoryUser, DirectoryUserCreate

router = APIRouter(prefix="/users", tags=["users"])


class DirectoryUserUpdate(BaseModel):
    email: Optional[str] = Field(None, max_length=255)
    display_name: Optional[str] = Field(None, max_length=255)
    roles: list[str] = Field(default_factory=list)
    is_active: bool = True


class UserProfile(BaseModel):
    id: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    roles: list[str] = Field(default_factory=list)


@router.get("/me", response_model=UserProfile)
async def get_current_user_profile(
    user: CurrentUser,
    directory: UserDirectory,
) -> UserProfile:
    entry = await directory.get(user.id)
    return UserProfile(
        id=user.id,
        email=entry.email if entry and entry.email else user.email,
        display_name=entry.display_name if entry and entry.display_name else user.display_name,
        roles=sorted(await directory.get_roles(user.id)),
    )


@router.get("/{user_id}", response_model=DirectoryUser)
async def get_directory_user(
    user_id: str,
    user: CurrentUser,
    directory: UserDirectory,
) -> DirectoryUser:
    entry = await directory.get(user_id)
    if not entry:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"User {user_id} not found",
        )
    return entry


@router.put("/{user_id}", response_model=DirectoryUser)
async def upsert_directory_user(
    user_id: str,
    data: DirectoryUserUpdate,
    user: CurrentUser,
    directory: UserDirectory,
) -> DirectoryUser:
    """
    Create or replace a user's directory entry and roles.

    Only directory admins may edit entries, including their own. Until the
    directory has an active admin, any caller may, so the first one can be
    registered.
    """
    admin_roles = get_settings().DIRECTORY_ADMIN_ROLES
    held = await directory.get_roles(user.id)
    if not held & set(admin_roles):
        admins = await directory.list_users_with_roles(admin_roles)
        if any(admins.values()):
            raise ForbiddenError("Only a directory admin can change user roles")
    return await directory.upsert(DirectoryUserCreate(id=user_id, **data.model_dump()))
