from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class TaggingRequestCreate(BaseModel):
    event_id: str = Field(min_length=1)
    role: str = Field(min_length=1)
    video_id: str | None = None
    section_id: str | None = None
    target_user_id: str | None = None


class EventScopedRequestCreate(BaseModel):
    event_id: str = Field(min_length=1)
    message: str | None = None


class AuthLevelRequestCreate(BaseModel):
    requested_level: int = Field(ge=0, le=4)
    message: str = Field(min_length=1)
    target_user_id: str | None = None


class RequestDecision(BaseModel):
    message: str | None = None
    add_old_creator_as_team_member: bool = False


class TeamMemberChange(BaseModel):
    event_id: str = Field(min_length=1)
    user_id: str = Field(min_length=1)


class TagUsersRequest(BaseModel):
    event_id: str = Field(min_length=1)
    role: str = Field(min_length=1)
    user_ids: list[str] = Field(min_length=1, max_length=500)
    video_id: str | None = None
    section_id: str | None = None


class TagRemoveRequest(BaseModel):
    event_id: str = Field(min_length=1)
    user_id: str = Field(min_length=1)
    role: str = Field(min_length=1)
    video_id: str | None = None
    section_id: str | None = None


def success_envelope(data: Any, trace_id: str, message: str = "ok") -> dict[str, Any]:
    return {
        "success": True,
        "data": data,
        "message": message,
        "meta": {
            "trace_id": trace_id,
        },
    }


def error_envelope(
    *,
    code: str,
    message: str,
    error_class: str,
    retryable: bool,
    trace_id: str,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    error: dict[str, Any] = {
        "code": code,
        "message": message,
        "retryable": retryable,
        "class": error_class,
    }
    if details is not None:
        error["details"] = details
    return {
        "success": False,
        "error": error,
        "meta": {
            "trace_id": trace_id,
        },
    }
