from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum


class AuthLevel(IntEnum):
    BASE_USER = 0
    CREATOR = 1
    MODERATOR = 2
    ADMIN = 3
    SUPER_ADMIN = 4


def coerce_auth_level(value: object) -> int:
    """Clamp any claim/header value into the 0..4 range; unknown input means BASE_USER."""
    if isinstance(value, bool):
        return AuthLevel.BASE_USER
    if isinstance(value, int):
        level = value
    elif isinstance(value, str) and value.strip().lstrip("-").isdigit():
        level = int(value.strip())
    else:
        return AuthLevel.BASE_USER
    return max(AuthLevel.BASE_USER, min(AuthLevel.SUPER_ADMIN, level))


@dataclass(frozen=True)
class Actor:
    id: str
    auth_level: int = AuthLevel.BASE_USER
    account_verified: bool = False

    def at_least(self, level: int) -> bool:
        return self.auth_level >= level


@dataclass(frozen=True)
class ResourceContext:
    creator_id: str | None
    is_team_member: bool = False
    is_event_team_member: bool = False


def _is_creator(ctx: ResourceContext, actor_id: str) -> bool:
    return bool(actor_id) and ctx.creator_id is not None and ctx.creator_id == actor_id


def can_update_event(auth_level: int, ctx: ResourceContext, actor_id: str) -> bool:
    if _is_creator(ctx, actor_id):
        return True
    if ctx.is_team_member:
        return True
    return auth_level >= AuthLevel.ADMIN


def can_delete_event(auth_level: int, ctx: ResourceContext, actor_id: str) -> bool:
    if _is_creator(ctx, actor_id):
        return True
    return auth_level >= AuthLevel.ADMIN


def can_transfer_ownership(auth_level: int, ctx: ResourceContext, actor_id: str) -> bool:
    return can_delete_event(auth_level, ctx, actor_id)


def can_update_section(auth_level: int, ctx: ResourceContext, actor_id: str) -> bool:
    # Section rights follow the owning event's team.
    if _is_creator(ctx, actor_id):
        return True
    if ctx.is_team_member or ctx.is_event_team_member:
        return True
    return auth_level >= AuthLevel.ADMIN


def can_delete_section(auth_level: int, ctx: ResourceContext, actor_id: str) -> bool:
    if _is_creator(ctx, actor_id):
        return True
    return auth_level >= AuthLevel.ADMIN


def can_update_workshop(auth_level: int, ctx: ResourceContext, actor_id: str) -> bool:
    if _is_creator(ctx, actor_id):
        return True
    if ctx.is_team_member:
        return True
    return auth_level >= AuthLevel.ADMIN


def can_update_user_cities(auth_level: int, ctx: ResourceContext, actor_id: str) -> bool:
    # City assignments have no owner; ctx.creator_id is expected to be None.
    if _is_creator(ctx, actor_id):
        return True
    return auth_level >= AuthLevel.ADMIN


def can_bulk_import(auth_level: int) -> bool:
    return auth_level >= AuthLevel.SUPER_ADMIN


def can_request_team_membership(auth_level: int) -> bool:
    return auth_level >= AuthLevel.CREATOR


def can_approve_auth_level_change(auth_level: int) -> bool:
    return auth_level >= AuthLevel.ADMIN
