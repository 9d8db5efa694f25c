from __future__ import annotations

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse

from event_requests.routes._deps import actor_from_request, notification_service, trace_id_from_request
from event_requests.schemas import success_envelope

router = APIRouter(prefix="/api/v1", tags=["notifications"])

TARGET_URL_CACHE_CONTROL = "private, max-age=30"


@router.get("/notifications")
def list_notifications(
    request: Request,
    limit: int | None = Query(default=None, ge=1),
    is_old: bool | None = None,
):
    actor = actor_from_request(request)
    items = notification_service().list_for_user(actor.id, limit=limit, is_old=is_old)
    return success_envelope({"items": items, "total": len(items)}, trace_id_from_request(request))


@router.get("/notifications/count")
def count_new_notifications(request: Request):
    actor = actor_from_request(request)
    count = notification_service().count_new(actor.id)
    return success_envelope({"count": count}, trace_id_from_request(request))


@router.post("/notifications/mark-all-old")
def mark_all_notifications_old(request: Request):
    actor = actor_from_request(request)
    updated = notification_service().mark_all_old(actor.id)
    return success_envelope({"updated": updated}, trace_id_from_request(request))


@router.post("/notifications/{notification_id}/mark-old")
def mark_notification_old(notification_id: str, request: Request):
    actor = actor_from_request(request)
    data = notification_service().mark_old(actor.id, notification_id)
    return success_envelope(data, trace_id_from_request(request))


@router.get("/notifications/{notification_id}/url")
def notification_target_url(notification_id: str, request: Request):
    actor = actor_from_request(request)
    url = notification_service().resolve_target_url(actor.id, notification_id)
    response = JSONResponse(content=success_envelope({"url": url}, trace_id_from_request(request)))
    response.headers["Cache-Control"] = TARGET_URL_CACHE_CONTROL
    return response
