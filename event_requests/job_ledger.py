from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from typing import Any

from event_requests.errors import invalid_state, not_found, validation_failed
from event_requests.models import TERMINAL_JOB_STATUSES, JobStatus, new_id, parse_timestamp, utcnow_iso
from event_requests.permissions import Actor, AuthLevel

logger = logging.getLogger(__name__)


class JobLedger:
    """Status ledger for long-running actions; jobs expire after the store's TTL."""

    def __init__(self, store: Any) -> None:
        self._repo = store.jobs_repository
        self._ttl_seconds = int(store.job_ttl_seconds)

    def create_job(self, created_by: str | None = None) -> str:
        now = datetime.now(UTC)
        job = {
            "job_id": new_id("job"),
            "created_by": created_by,
            "status": JobStatus.PENDING.value,
            "result": None,
            "error": None,
            "created_at": now.isoformat(),
            "updated_at": now.isoformat(),
            "completed_at": None,
            "expires_at": (now + timedelta(seconds=self._ttl_seconds)).isoformat(),
        }
        self._repo.create(job=job)
        logger.info("job_created job_id=%s", job["job_id"])
        return job["job_id"]

    def get_job(self, job_id: str) -> dict[str, Any] | None:
        row = self._repo.get(job_id=job_id)
        if row is None:
            return None
        if parse_timestamp(row["expires_at"]) <= datetime.now(UTC):
            self._repo.delete(job_id=job_id)
            return None
        return row

    def get_job_for(self, job_id: str, actor: Actor) -> dict[str, Any]:
        """Jobs are visible to the user who started them and to super admins."""
        job = self.get_job(job_id)
        if job is None or (job.get("created_by") != actor.id and not actor.at_least(AuthLevel.SUPER_ADMIN)):
            raise not_found("JOB_NOT_FOUND", "job not found")
        return job

    def update_job_status(
        self,
        job_id: str,
        status: str,
        *,
        result: Any = None,
        error: str | None = None,
    ) -> dict[str, Any]:
        try:
            new_status = JobStatus(status).value
        except ValueError:
            raise validation_failed(f"unknown job status: {status}") from None
        current = self.get_job(job_id)
        if current is None:
            raise not_found("JOB_NOT_FOUND", "job not found")
        if current["status"] in TERMINAL_JOB_STATUSES:
            raise invalid_state(f"job already {current['status']}", code="JOB_STATE_INVALID")

        now = utcnow_iso()
        terminal = new_status in TERMINAL_JOB_STATUSES
        updated = self._repo.update_if_active(
            job_id=job_id,
            fields={
                "status": new_status,
                "result": result,
                "error": error,
                "updated_at": now,
                "completed_at": now if terminal else None,
            },
        )
        if updated is None:
            raise invalid_state("job reached a terminal state concurrently", code="JOB_STATE_INVALID")
        if terminal:
            logger.info("job_finished job_id=%s status=%s", job_id, new_status)
        return updated

    def cleanup_expired_jobs(self) -> int:
        removed = self._repo.delete_expired(now_iso=utcnow_iso())
        if removed:
            logger.info("jobs_expired_removed count=%s", removed)
        return removed
