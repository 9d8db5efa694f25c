from __future__ import annotations

import uuid

from fastapi import Request
from fastapi.responses import JSONResponse

from event_requests.errors import unauthenticated
from event_requests.job_ledger import JobLedger
from event_requests.notification_service import NotificationService
from event_requests.permissions import Actor
from event_requests.request_service import RequestService
from event_requests.schemas import error_envelope
from event_requests.store import store
from event_requests.tagging import BulkTagService


def trace_id_from_request(request: Request) -> str:
    trace_id = getattr(request.state, "trace_id", None)
    if trace_id:
        return trace_id
    return uuid.uuid4().hex


def request_id_from_request(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        return request_id
    return f"req_{uuid.uuid4().hex[:12]}"


def actor_from_request(request: Request) -> Actor:
    actor = getattr(request.state, "actor", None)
    if actor is None:
        raise unauthenticated()
    return actor


def error_response(
    request: Request,
    *,
    code: str,
    message: str,
    error_class: str,
    retryable: bool,
    status_code: int,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=error_envelope(
            code=code,
            message=message,
            error_class=error_class,
            retryable=retryable,
            trace_id=trace_id_from_request(request),
        ),
    )


def notification_service() -> NotificationService:
    return NotificationService(store)


def request_service() -> RequestService:
    return RequestService(store, notification_service())


def job_ledger() -> JobLedger:
    return JobLedger(store)


def bulk_tag_service() -> BulkTagService:
    return BulkTagService(store, requests=request_service(), ledger=job_ledger())
