from __future__ import annotations

from fastapi import APIRouter, Query, Request

from event_requests.routes._deps import actor_from_request, request_service, trace_id_from_request
from event_requests.schemas import TeamMemberChange, success_envelope

router = APIRouter(prefix="/api/v1", tags=["team-members"])


@router.get("/team-members")
def list_team_members(request: Request, event_id: str = Query(min_length=1)):
    actor_from_request(request)
    data = request_service().list_team_members(event_id=event_id)
    return success_envelope(data, trace_id_from_request(request))


@router.post("/team-members")
def add_team_member(payload: TeamMemberChange, request: Request):
    data = request_service().add_team_member(
        actor_from_request(request),
        event_id=payload.event_id,
        user_id=payload.user_id,
    )
    return success_envelope(data, trace_id_from_request(request))


@router.delete("/team-members")
def remove_team_member(payload: TeamMemberChange, request: Request):
    data = request_service().remove_team_member(
        actor_from_request(request),
        event_id=payload.event_id,
        user_id=payload.user_id,
    )
    return success_envelope(data, trace_id_from_request(request))
