from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse

from event_requests.models import parse_request_type
from event_requests.routes._deps import actor_from_request, request_service, trace_id_from_request
from event_requests.schemas import (
    AuthLevelRequestCreate,
    EventScopedRequestCreate,
    RequestDecision,
    TaggingRequestCreate,
    success_envelope,
)

router = APIRouter(prefix="/api/v1", tags=["requests"])


def _created_response(request: Request, data: dict[str, Any]) -> JSONResponse:
    created = data.get("request") is not None and not data.get("is_existing")
    return JSONResponse(
        status_code=201 if created else 200,
        content=success_envelope(data, trace_id_from_request(request)),
    )


def _split_roles(raw: str | None) -> list[str] | None:
    if not raw:
        return None
    return [x.strip() for x in raw.split(",") if x.strip()]


@router.post("/tagging-requests")
def create_tagging_request(payload: TaggingRequestCreate, request: Request):
    data = request_service().create_tagging_request(
        actor_from_request(request),
        event_id=payload.event_id,
        role=payload.role,
        video_id=payload.video_id,
        section_id=payload.section_id,
        target_user_id=payload.target_user_id,
    )
    return _created_response(request, data)


@router.get("/requests/pending")
def pending_tagging_requests(
    request: Request,
    event_id: str = Query(min_length=1),
    section_id: str | None = None,
    video_id: str | None = None,
    roles: str | None = None,
):
    data = request_service().pending_tagging_requests(
        actor_from_request(request),
        event_id=event_id,
        section_id=section_id,
        video_id=video_id,
        roles=_split_roles(roles),
    )
    return success_envelope(data, trace_id_from_request(request))


@router.post("/team-member-requests")
def create_team_member_request(payload: EventScopedRequestCreate, request: Request):
    data = request_service().create_team_member_request(actor_from_request(request), event_id=payload.event_id)
    return _created_response(request, data)


@router.get("/team-member-requests/pending")
def has_pending_team_member_request(request: Request, event_id: str = Query(min_length=1)):
    pending = request_service().has_pending_team_member_request(actor_from_request(request), event_id=event_id)
    return success_envelope({"pending": pending}, trace_id_from_request(request))


@router.post("/ownership-requests")
def create_ownership_request(payload: EventScopedRequestCreate, request: Request):
    data = request_service().create_ownership_request(
        actor_from_request(request),
        event_id=payload.event_id,
        message=payload.message,
    )
    return _created_response(request, data)


@router.get("/ownership-requests/pending")
def has_pending_ownership_request(request: Request, event_id: str = Query(min_length=1)):
    pending = request_service().has_pending_ownership_request(actor_from_request(request), event_id=event_id)
    return success_envelope({"pending": pending}, trace_id_from_request(request))


@router.post("/auth-level-requests")
def create_auth_level_request(payload: AuthLevelRequestCreate, request: Request):
    data = request_service().create_auth_level_change_request(
        actor_from_request(request),
        requested_level=payload.requested_level,
        message=payload.message,
        target_user_id=payload.target_user_id,
    )
    return _created_response(request, data)


@router.get("/requests/incoming")
def list_incoming_requests(request: Request):
    items = request_service().list_incoming(actor_from_request(request))
    return success_envelope({"items": items, "total": len(items)}, trace_id_from_request(request))


@router.get("/requests/outgoing")
def list_outgoing_requests(request: Request, status: str | None = None):
    items = request_service().list_outgoing(actor_from_request(request), status=status)
    return success_envelope({"items": items, "total": len(items)}, trace_id_from_request(request))


@router.post("/requests/{request_type}/{request_id}/approve")
def approve_request(request_type: str, request_id: str, request: Request, payload: RequestDecision | None = None):
    decision = payload or RequestDecision()
    data = request_service().approve_request(
        parse_request_type(request_type),
        request_id,
        actor_from_request(request),
        response_message=decision.message,
        add_old_creator_as_team_member=decision.add_old_creator_as_team_member,
    )
    return success_envelope(data, trace_id_from_request(request))


@router.post("/requests/{request_type}/{request_id}/deny")
def deny_request(request_type: str, request_id: str, request: Request, payload: RequestDecision | None = None):
    decision = payload or RequestDecision()
    data = request_service().deny_request(
        parse_request_type(request_type),
        request_id,
        actor_from_request(request),
        response_message=decision.message,
    )
    return success_envelope(data, trace_id_from_request(request))


@router.post("/requests/{request_type}/{request_id}/cancel")
def cancel_request(request_type: str, request_id: str, request: Request):
    data = request_service().cancel_request(parse_request_type(request_type), request_id, actor_from_request(request))
    return success_envelope(data, trace_id_from_request(request))
