from __future__ import annotations

import logging
import os
import uuid

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.cors import CORSMiddleware

from event_requests.errors import ApiError
from event_requests.routes import notifications, requests, tags, team_members
from event_requests.routes._deps import error_response, request_id_from_request, trace_id_from_request
from event_requests.schemas import success_envelope
from event_requests.security import (
    JwtSecurityConfig,
    actor_from_headers,
    parse_and_validate_bearer_token,
    redact_sensitive,
)
from event_requests.store import store

logger = logging.getLogger(__name__)

_PUBLIC_API_PATHS = {"/api/v1/health"}
_SECURITY_CODES = {"AUTH_UNAUTHORIZED", "AUTH_FORBIDDEN"}


def create_app() -> FastAPI:
    app = FastAPI(title="Event Requests API", version="0.1.0")
    security_cfg = JwtSecurityConfig.from_env()
    app.state.security_cfg = security_cfg
    cors_origins = os.environ.get("CORS_ALLOW_ORIGINS", "http://127.0.0.1:3000,http://localhost:3000")
    allow_origins = [x.strip() for x in cors_origins.split(",") if x.strip()]
    if allow_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=allow_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    def _log_security_block(request: Request, exc: ApiError) -> None:
        headers_obj = dict(request.headers.items())
        headers_payload = redact_sensitive(headers_obj) if security_cfg.log_redaction_enabled else headers_obj
        logger.warning(
            "security_blocked code=%s path=%s trace_id=%s detail=%s headers=%s",
            exc.code,
            request.url.path,
            trace_id_from_request(request),
            exc.message,
            headers_payload,
        )

    @app.middleware("http")
    async def add_trace_id(request: Request, call_next):
        incoming_trace_id = request.headers.get("x-trace-id", "").strip()
        request.state.trace_id = incoming_trace_id or uuid.uuid4().hex
        request.state.request_id = request.headers.get("x-request-id", f"req_{uuid.uuid4().hex[:12]}")
        request.state.actor = None
        path = request.url.path
        protected = path.startswith("/api/v1/") and path not in _PUBLIC_API_PATHS
        if security_cfg.trace_id_strict_required and protected and not incoming_trace_id:
            response = error_response(
                request,
                code="TRACE_ID_REQUIRED",
                message="x-trace-id header is required",
                error_class="validation",
                retryable=False,
                status_code=400,
            )
            response.headers["x-trace-id"] = trace_id_from_request(request)
            response.headers["x-request-id"] = request_id_from_request(request)
            return response
        try:
            if security_cfg.enabled and protected:
                auth_ctx = parse_and_validate_bearer_token(
                    authorization=request.headers.get("Authorization"),
                    cfg=security_cfg,
                )
                request.state.actor = auth_ctx.to_actor(security_cfg)
            elif not security_cfg.enabled:
                request.state.actor = actor_from_headers(request.headers)
            response = await call_next(request)
            response.headers["x-trace-id"] = trace_id_from_request(request)
            response.headers["x-request-id"] = request_id_from_request(request)
            return response
        except ApiError as exc:
            _log_security_block(request, exc)
            response = error_response(
                request,
                code=exc.code,
                message=exc.message,
                error_class=exc.error_class,
                retryable=exc.retryable,
                status_code=exc.http_status,
            )
            response.headers["x-trace-id"] = trace_id_from_request(request)
            response.headers["x-request-id"] = request_id_from_request(request)
            return response

    @app.exception_handler(ApiError)
    async def handle_api_error(request: Request, exc: ApiError):
        if exc.code in _SECURITY_CODES:
            _log_security_block(request, exc)
        if exc.http_status >= 500:
            logger.error("api_error code=%s trace_id=%s", exc.code, trace_id_from_request(request))
        return error_response(
            request,
            code=exc.code,
            message=exc.message,
            error_class=exc.error_class,
            retryable=exc.retryable,
            status_code=exc.http_status,
        )

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        return error_response(
            request,
            code="REQ_VALIDATION_FAILED",
            message="invalid payload",
            error_class="validation",
            retryable=False,
            status_code=400,
        )

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return error_response(
                request,
                code="REQ_NOT_FOUND",
                message="resource not found",
                error_class="validation",
                retryable=False,
                status_code=404,
            )
        return error_response(
            request,
            code="REQ_HTTP_ERROR",
            message=str(exc.detail),
            error_class="validation",
            retryable=False,
            status_code=exc.status_code,
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.exception("unhandled_error path=%s trace_id=%s", request.url.path, trace_id_from_request(request))
        return error_response(
            request,
            code="INTERNAL_ERROR",
            message="internal error",
            error_class="internal",
            retryable=False,
            status_code=500,
        )

    @app.get("/healthz")
    def healthz(request: Request) -> dict[str, object]:
        return success_envelope({"status": "ok", "store_backend": store.backend_name}, trace_id_from_request(request))

    @app.get("/api/v1/health")
    def health_api(request: Request) -> dict[str, object]:
        return success_envelope({"status": "ok", "store_backend": store.backend_name}, trace_id_from_request(request))

    app.include_router(requests.router)
    app.include_router(team_members.router)
    app.include_router(tags.router)
    app.include_router(notifications.router)
    return app


app = create_app()
