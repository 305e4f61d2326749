"""Owner / admin authorization shared by the lifecycle engine and scaffold service."""
from __future__ import annotations

from typing import Optional

from squash.errors import Forbidden, Unconfigured
from squash.repos.settings import SettingsRepo


async def is_admin(settings: SettingsRepo, user_id: Optional[int]) -> bool:
    if user_id is None:
        return False
    admin_id = await settings.get_admin_id()
    return admin_id is not None and admin_id == user_id


async def is_owner_or_admin(settings: SettingsRepo, user_id: Optional[int], owner_id: Optional[int]) -> bool:
    if user_id is not None and owner_id is not None and user_id == owner_id:
        return True
    return await is_admin(settings, user_id)


async def require_admin(settings: SettingsRepo, user_id: Optional[int], what: str) -> None:
    if not await is_admin(settings, user_id):
        raise Forbidden(f"Only the admin can {what}")


async def require_owner_or_admin(
    settings: SettingsRepo, user_id: Optional[int], owner_id: Optional[int], what: str
) -> None:
    if not await is_owner_or_admin(settings, user_id, owner_id):
        raise Forbidden(f"Only the owner or admin can {what}")


async def resolve_owner(settings: SettingsRepo, scaffold) -> int:
    """Scaffold owner, falling back to the global admin."""
    owner_id = scaffold.owner_id or await settings.get_admin_id()
    if not owner_id:
        raise Unconfigured("Cannot determine event owner. Set scaffold owner or global admin.")
    return owner_id
