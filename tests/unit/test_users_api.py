"""
Unit tests for the user directory route functions.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from app.api import users
from app.core.exceptions import ForbiddenError


@pytest.fixture
def directory():
    directory = AsyncMock()
    directory.upsert.side_effect = lambda data: data
    return directory


def _caller(user_id: str):
    return SimpleNamespace(id=user_id, email=f"{user_id}@example.com", display_name=user_id)


@pytest.mark.asyncio
async def test_non_admin_cannot_change_roles(directory):
    directory.get_roles.return_value = {"manager"}
    directory.list_users_with_roles.return_value = {"admin": ["a1"]}

    with pytest.raises(ForbiddenError):
        await users.upsert_directory_user(
            "m1", users.DirectoryUserUpdate(roles=["manager", "admin"]), _caller("m1"), directory
        )

    directory.upsert.assert_not_awaited()


@pytest.mark.asyncio
async def test_admin_can_change_roles(directory):
    directory.get_roles.return_value = {"admin"}

    saved = await users.upsert_directory_user(
        "m1", users.DirectoryUserUpdate(roles=["manager"]), _caller("a1"), directory
    )

    assert saved.id == "m1"
    assert saved.roles == ["manager"]
    directory.list_users_with_roles.assert_not_awaited()


@pytest.mark.asyncio
async def test_first_admin_can_be_registered(directory):
    directory.get_roles.return_value = set()
    directory.list_users_with_roles.return_value = {"admin": []}

    saved = await users.upsert_directory_user(
        "a1", users.DirectoryUserUpdate(roles=["admin"]), _caller("a1"), directory
    )

    assert saved.roles == ["admin"]
