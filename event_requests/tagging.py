from __future__ import annotations

import logging
from typing import Any

from event_requests.errors import ApiError, forbidden, validation_failed
from event_requests.job_ledger import JobLedger
from event_requests.models import JobStatus
from event_requests.permissions import Actor
from event_requests.request_service import RequestService

logger = logging.getLogger(__name__)


class BulkTagService:
    """Tag many users with one role; synchronously or through the job ledger."""

    def __init__(
        self,
        store: Any,
        *,
        requests: RequestService | None = None,
        ledger: JobLedger | None = None,
    ) -> None:
        self._requests = requests or RequestService(store)
        self._ledger = ledger or JobLedger(store)

    def _check(
        self,
        actor: Actor,
        *,
        event_id: str,
        user_ids: list[str],
        section_id: str | None,
        video_id: str | None,
    ) -> list[str]:
        if not actor.account_verified:
            raise forbidden("account verification is required to tag users")
        unique = list(dict.fromkeys(x.strip() for x in user_ids if x and x.strip()))
        if not unique:
            raise validation_failed("user_ids must not be empty")
        allowed = self._requests.can_update_resource(
            actor,
            event_id=event_id,
            section_id=section_id,
            video_id=video_id,
        )
        if not allowed:
            raise forbidden("not allowed to tag users on this resource")
        return unique

    def tag_users(
        self,
        actor: Actor,
        *,
        event_id: str,
        user_ids: list[str],
        role: str,
        section_id: str | None = None,
        video_id: str | None = None,
    ) -> dict[str, Any]:
        unique = self._check(actor, event_id=event_id, user_ids=user_ids, section_id=section_id, video_id=video_id)
        tagged: list[str] = []
        skipped: list[str] = []
        failed: list[dict[str, str]] = []
        for user_id in unique:
            try:
                outcome = self._requests.create_tagging_request(
                    actor,
                    event_id=event_id,
                    role=role,
                    section_id=section_id,
                    video_id=video_id,
                    target_user_id=user_id,
                )
            except ApiError as exc:
                if exc.http_status == 400:
                    raise
                failed.append({"user_id": user_id, "code": exc.code, "message": exc.message})
                continue
            if outcome["applied_roles"]:
                tagged.append(user_id)
            else:
                skipped.append(user_id)
        logger.info(
            "bulk_tag_finished event_id=%s tagged=%s skipped=%s failed=%s",
            event_id,
            len(tagged),
            len(skipped),
            len(failed),
        )
        return {"tagged": tagged, "skipped": skipped, "failed": failed}

    def start_job(
        self,
        actor: Actor,
        *,
        event_id: str,
        user_ids: list[str],
        section_id: str | None = None,
        video_id: str | None = None,
    ) -> str:
        self._check(actor, event_id=event_id, user_ids=user_ids, section_id=section_id, video_id=video_id)
        return self._ledger.create_job(created_by=actor.id)

    def run_job(self, job_id: str, actor: Actor, **kwargs: Any) -> None:
        """Background entry point; records exactly one terminal status for ``job_id``."""
        self._ledger.update_job_status(job_id, JobStatus.PROCESSING.value)
        try:
            result = self.tag_users(actor, **kwargs)
        except ApiError as exc:
            self._ledger.update_job_status(job_id, JobStatus.FAILED.value, error=exc.message)
            return
        except Exception:
            logger.exception("bulk_tag_job_failed job_id=%s", job_id)
            self._ledger.update_job_status(job_id, JobStatus.FAILED.value, error="internal error")
            return
        self._ledger.update_job_status(job_id, JobStatus.COMPLETED.value, result=result)
