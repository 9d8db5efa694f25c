from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from event_requests.errors import validation_failed


class RequestStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    DENIED = "DENIED"
    CANCELLED = "CANCELLED"


class RequestType(str, Enum):
    TAGGING = "TAGGING"
    TEAM_MEMBER = "TEAM_MEMBER"
    OWNERSHIP = "OWNERSHIP"
    AUTH_LEVEL_CHANGE = "AUTH_LEVEL_CHANGE"


class NotificationType(str, Enum):
    INCOMING_REQUEST = "INCOMING_REQUEST"
    REQUEST_APPROVED = "REQUEST_APPROVED"
    REQUEST_DENIED = "REQUEST_DENIED"
    TAGGED = "TAGGED"
    OWNERSHIP_TRANSFERRED = "OWNERSHIP_TRANSFERRED"
    OWNERSHIP_REQUESTED = "OWNERSHIP_REQUESTED"
    OWNERSHIP_REQUEST_APPROVED = "OWNERSHIP_REQUEST_APPROVED"
    OWNERSHIP_REQUEST_DENIED = "OWNERSHIP_REQUEST_DENIED"


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


ALLOWED_REQUEST_TRANSITIONS: dict[str, set[str]] = {
    RequestStatus.PENDING.value: {
        RequestStatus.APPROVED.value,
        RequestStatus.DENIED.value,
        RequestStatus.CANCELLED.value,
    },
    RequestStatus.APPROVED.value: set(),
    RequestStatus.DENIED.value: set(),
    RequestStatus.CANCELLED.value: set(),
}

TERMINAL_JOB_STATUSES = frozenset({JobStatus.COMPLETED.value, JobStatus.FAILED.value})


def utcnow_iso() -> str:
    return datetime.now(UTC).isoformat()


def parse_timestamp(value: str | datetime) -> datetime:
    """Aware datetime for an ISO string or datetime; naive values are taken as UTC."""
    parsed = value if isinstance(value, datetime) else datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def parse_request_type(raw: str) -> RequestType:
    normalized = str(raw or "").strip().upper().replace("-", "_")
    aliases = {"TAG": "TAGGING", "TEAM": "TEAM_MEMBER", "AUTH_LEVEL": "AUTH_LEVEL_CHANGE"}
    normalized = aliases.get(normalized, normalized)
    try:
        return RequestType(normalized)
    except ValueError:
        raise validation_failed(f"unknown request type: {raw}") from None


@dataclass(frozen=True)
class RequestKey:
    """Identity of a pending request; at most one PENDING row per key."""

    request_type: RequestType
    sender_id: str
    target_user_id: str | None = None
    event_id: str | None = None
    video_id: str | None = None
    section_id: str | None = None
    role: str | None = None

    def as_tuple(self) -> tuple[str, str, str, str, str, str, str]:
        return (
            self.request_type.value,
            self.sender_id,
            self.target_user_id or "",
            self.event_id or "",
            self.video_id or "",
            self.section_id or "",
            self.role or "",
        )

    def matches(self, row: dict[str, Any]) -> bool:
        return key_for_row(row).as_tuple() == self.as_tuple()


def key_for_row(row: dict[str, Any]) -> RequestKey:
    return RequestKey(
        request_type=RequestType(row["request_type"]),
        sender_id=str(row["sender_id"]),
        target_user_id=row.get("target_user_id"),
        event_id=row.get("event_id"),
        video_id=row.get("video_id"),
        section_id=row.get("section_id"),
        role=row.get("role"),
    )


def new_request_record(key: RequestKey, **extra: Any) -> dict[str, Any]:
    now = utcnow_iso()
    return {
        "request_id": new_id("req"),
        "request_type": key.request_type.value,
        "sender_id": key.sender_id,
        "target_user_id": key.target_user_id,
        "event_id": key.event_id,
        "video_id": key.video_id,
        "section_id": key.section_id,
        "role": key.role,
        "status": RequestStatus.PENDING.value,
        "message": extra.get("message"),
        "response_message": None,
        "responder_id": None,
        "current_level": extra.get("current_level"),
        "requested_level": extra.get("requested_level"),
        "created_at": now,
        "updated_at": now,
        "responded_at": None,
    }
