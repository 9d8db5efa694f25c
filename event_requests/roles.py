from __future__ import annotations

from enum import Enum

from event_requests.errors import validation_failed

EVENT_ROLES: tuple[str, ...] = (
    "Organizer",
    "DJ",
    "Photographer",
    "Videographer",
    "Designer",
    "MC",
    "Team Member",
)
VIDEO_ROLES: tuple[str, ...] = ("Dancer", "Winner", "Choreographer", "Teacher", *EVENT_ROLES)
SECTION_ROLES: tuple[str, ...] = ("Winner", "Judge")

WINNER = "WINNER"
DANCER = "DANCER"
TEAM_MEMBER = "TEAM_MEMBER"

_UPPERCASE_DISPLAY = {"DJ", "MC"}


class RoleScope(str, Enum):
    EVENT = "event"
    SECTION = "section"
    VIDEO = "video"


def to_storage_role(role: str) -> str:
    cleaned = " ".join(str(role or "").split())
    if cleaned.lower() == "team member":
        return TEAM_MEMBER
    return cleaned.upper().replace(" ", "_")


def to_display_role(role: str) -> str:
    stored = str(role or "").strip()
    if stored in _UPPERCASE_DISPLAY:
        return stored
    if stored == TEAM_MEMBER:
        return "Team Member"
    return stored[:1].upper() + stored[1:].lower()


def scope_for(*, section_id: str | None, video_id: str | None) -> RoleScope:
    if video_id:
        return RoleScope.VIDEO
    if section_id:
        return RoleScope.SECTION
    return RoleScope.EVENT


def vocabulary(scope: RoleScope) -> tuple[str, ...]:
    if scope == RoleScope.VIDEO:
        return VIDEO_ROLES
    if scope == RoleScope.SECTION:
        return SECTION_ROLES
    return EVENT_ROLES


def validate_role(role: str, scope: RoleScope) -> str:
    """Return the storage form of ``role`` or raise ROLE_INVALID."""
    if not str(role or "").strip():
        raise validation_failed("role is required", code="ROLE_INVALID")
    stored = to_storage_role(role)
    allowed = {to_storage_role(item) for item in vocabulary(scope)}
    if stored not in allowed:
        raise validation_failed(f"role {role!r} is not allowed for {scope.value} tags", code="ROLE_INVALID")
    return stored
