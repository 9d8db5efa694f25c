from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Request
from fastapi.responses import JSONResponse

from event_requests.routes._deps import (
    actor_from_request,
    bulk_tag_service,
    job_ledger,
    request_service,
    trace_id_from_request,
)
from event_requests.schemas import TagRemoveRequest, TagUsersRequest, success_envelope

router = APIRouter(prefix="/api/v1", tags=["tags"])


@router.post("/tag-users")
def tag_users(payload: TagUsersRequest, request: Request):
    data = bulk_tag_service().tag_users(
        actor_from_request(request),
        event_id=payload.event_id,
        user_ids=payload.user_ids,
        role=payload.role,
        section_id=payload.section_id,
        video_id=payload.video_id,
    )
    return success_envelope(data, trace_id_from_request(request))


@router.post("/tag-users/jobs")
def start_tag_users_job(payload: TagUsersRequest, request: Request, background_tasks: BackgroundTasks):
    actor = actor_from_request(request)
    service = bulk_tag_service()
    job_id = service.start_job(
        actor,
        event_id=payload.event_id,
        user_ids=payload.user_ids,
        section_id=payload.section_id,
        video_id=payload.video_id,
    )
    background_tasks.add_task(
        service.run_job,
        job_id,
        actor,
        event_id=payload.event_id,
        user_ids=payload.user_ids,
        role=payload.role,
        section_id=payload.section_id,
        video_id=payload.video_id,
    )
    return JSONResponse(
        status_code=202,
        content=success_envelope({"job_id": job_id, "status": "pending"}, trace_id_from_request(request)),
    )


@router.get("/jobs/{job_id}")
def get_job(job_id: str, request: Request):
    job = job_ledger().get_job_for(job_id, actor_from_request(request))
    return success_envelope(job, trace_id_from_request(request))


@router.delete("/tags")
def remove_tag(payload: TagRemoveRequest, request: Request):
    data = request_service().remove_tag(
        actor_from_request(request),
        event_id=payload.event_id,
        user_id=payload.user_id,
        role=payload.role,
        section_id=payload.section_id,
        video_id=payload.video_id,
    )
    return success_envelope(data, trace_id_from_request(request))
