from __future__ import annotations

from enum import Enum

from event_requests.permissions import Actor, AuthLevel


class Action(str, Enum):
    TAG = "tag"
    JOIN_TEAM = "join_team"
    CLAIM_OWNERSHIP = "claim_ownership"


class Decision(str, Enum):
    DIRECT_APPLY = "direct_apply"
    CREATE_PENDING_REQUEST = "create_pending_request"
    DENY = "deny"


def decide(
    action: Action,
    actor: Actor,
    *,
    can_update: bool,
    target_user_id: str | None = None,
) -> Decision:
    """Choose between applying ``action`` now and queueing it for approval.

    ``can_update`` is the PermissionResolver update verdict for the actor on
    the affected resource. Team membership and ownership are privilege
    elevations and only a SUPER_ADMIN skips approval for them.
    """
    if actor.at_least(AuthLevel.SUPER_ADMIN):
        return Decision.DIRECT_APPLY
    if action in (Action.JOIN_TEAM, Action.CLAIM_OWNERSHIP):
        return Decision.CREATE_PENDING_REQUEST
    if can_update:
        return Decision.DIRECT_APPLY
    if target_user_id is None or target_user_id == actor.id:
        return Decision.CREATE_PENDING_REQUEST
    return Decision.DENY
