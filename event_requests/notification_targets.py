from __future__ import annotations

import logging
from collections.abc import Mapping
from enum import Enum
from typing import Any

from event_requests.models import NotificationType, RequestType
from event_requests.navigation import (
    NavigationContext,
    decode_tail,
    event_only,
    navigation_from_ids,
    to_path,
)

logger = logging.getLogger(__name__)

DASHBOARD_REQUESTS_PATH = "/dashboard#requests"

_INCOMING_REQUEST_TYPES = {
    RequestType.TAGGING.value,
    RequestType.TEAM_MEMBER.value,
    RequestType.OWNERSHIP.value,
    RequestType.AUTH_LEVEL_CHANGE.value,
}
_DECISION_TYPES = {NotificationType.REQUEST_APPROVED.value, NotificationType.REQUEST_DENIED.value}
_OWNERSHIP_REQUEST_TYPES = {
    NotificationType.OWNERSHIP_REQUESTED.value,
    NotificationType.OWNERSHIP_REQUEST_APPROVED.value,
    NotificationType.OWNERSHIP_REQUEST_DENIED.value,
}


def _as_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, Enum):
        value = value.value
    return str(value)


def _field(source: Any, name: str, camel: str | None = None) -> Any:
    if source is None:
        return None
    if isinstance(source, Mapping):
        if name in source:
            return source[name]
        return source.get(camel) if camel else None
    value = getattr(source, name, None)
    if value is None and camel:
        value = getattr(source, camel, None)
    return value


def related_request_lookup(notification: Any) -> tuple[RequestType, str] | None:
    """Which stored request, if any, ``resolve`` needs for ``notification``."""
    ntype = _as_text(_field(notification, "type"))
    related_type = _as_text(_field(notification, "related_request_type", "relatedRequestType"))
    related_id = _as_text(_field(notification, "related_request_id", "relatedRequestId"))
    if not related_id:
        return None
    if ntype in _DECISION_TYPES and related_type in (RequestType.TAGGING.value, RequestType.TEAM_MEMBER.value):
        return RequestType(related_type), related_id
    if ntype in _OWNERSHIP_REQUEST_TYPES:
        return RequestType.OWNERSHIP, related_id
    return None


def _related_context(related: Any) -> NavigationContext | None:
    return navigation_from_ids(
        _field(related, "event_id", "eventId"),
        _field(related, "section_id", "sectionId"),
        _field(related, "video_id", "videoId"),
    )


def _resolve(notification: Any, related: Any) -> str | None:
    ntype = _as_text(_field(notification, "type"))
    related_type = _as_text(_field(notification, "related_request_type", "relatedRequestType"))
    message = _field(notification, "message")

    if ntype == NotificationType.INCOMING_REQUEST.value:
        return DASHBOARD_REQUESTS_PATH if related_type in _INCOMING_REQUEST_TYPES else None
    if ntype in _DECISION_TYPES:
        if related_type == RequestType.TAGGING.value:
            return to_path(_related_context(related))
        if related_type == RequestType.TEAM_MEMBER.value:
            return to_path(event_only(_related_context(related)))
        return None
    if ntype == NotificationType.TAGGED.value:
        return to_path(decode_tail(message))
    if ntype == NotificationType.OWNERSHIP_TRANSFERRED.value:
        return to_path(event_only(decode_tail(message)))
    if ntype in _OWNERSHIP_REQUEST_TYPES:
        ctx = event_only(_related_context(related)) or event_only(decode_tail(message))
        return to_path(ctx)
    return None


def resolve(notification: Any, related_request: Any = None) -> str | None:
    """Map a stored notification to a navigable path, or None when it has no target.

    ``notification`` and ``related_request`` may be mappings (snake_case or
    camelCase keys) or attribute objects. Bad input never raises.
    """
    try:
        return _resolve(notification, related_request)
    except Exception:
        logger.warning(
            "notification_target_unresolvable source=%s",
            type(notification).__name__,
            exc_info=True,
        )
        return None
