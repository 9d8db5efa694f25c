from __future__ import annotations

import json
import re
import threading
from typing import Any

from event_requests.db.postgres import PostgresTxRunner
from event_requests.db.schema import iso_or_none
from event_requests.models import TERMINAL_JOB_STATUSES, parse_timestamp


def _validate_identifier(name: str) -> str:
    if not re.fullmatch(r"[A-Za-z_][A-Za-z0-9_]*", name):
        raise ValueError(f"invalid SQL identifier: {name}")
    return name


class InMemoryJobsRepository:
    def __init__(self, jobs: dict[str, dict[str, Any]], lock: threading.RLock | None = None) -> None:
        self._jobs = jobs
        self._lock = lock or threading.RLock()

    def create(self, *, job: dict[str, Any]) -> dict[str, Any]:
        with self._lock:
            self._jobs[str(job["job_id"])] = dict(job)
        return dict(job)

    def get(self, *, job_id: str) -> dict[str, Any] | None:
        with self._lock:
            row = self._jobs.get(job_id)
            return dict(row) if row is not None else None

    def update_if_active(self, *, job_id: str, fields: dict[str, Any]) -> dict[str, Any] | None:
        """Apply ``fields`` unless the job is missing or already terminal."""
        with self._lock:
            row = self._jobs.get(job_id)
            if row is None or row["status"] in TERMINAL_JOB_STATUSES:
                return None
            row.update(fields)
            return dict(row)

    def delete(self, *, job_id: str) -> None:
        with self._lock:
            self._jobs.pop(job_id, None)

    def delete_expired(self, *, now_iso: str) -> int:
        with self._lock:
            now = parse_timestamp(now_iso)
            expired = [job_id for job_id, row in self._jobs.items() if parse_timestamp(row["expires_at"]) <= now]
            for job_id in expired:
                del self._jobs[job_id]
        return len(expired)


class PostgresJobsRepository:
    def __init__(self, *, tx_runner: PostgresTxRunner, table_name: str = "workflow_jobs") -> None:
        self._tx_runner = tx_runner
        self._table_name = _validate_identifier(table_name)

    @staticmethod
    def _row_to_job(row: Any) -> dict[str, Any]:
        result = row[2]
        if isinstance(result, str):
            result = json.loads(result)
        return {
            "job_id": row[0],
            "status": row[1],
            "result": result,
            "error": row[3],
            "created_at": iso_or_none(row[4]),
            "updated_at": iso_or_none(row[5]),
            "completed_at": iso_or_none(row[6]),
            "expires_at": iso_or_none(row[7]),
            "created_by": row[8],
        }

    def create(self, *, job: dict[str, Any]) -> dict[str, Any]:
        payload = dict(job)
        sql = f"""
            INSERT INTO {self._table_name} (
                job_id, status, result, error, created_at, updated_at, completed_at, expires_at, created_by
            ) VALUES (%s, %s, %s::jsonb, %s, %s, %s, %s, %s, %s)
        """

        def _op(conn: Any) -> dict[str, Any]:
            with conn.cursor() as cur:
                cur.execute(
                    sql,
                    (
                        payload["job_id"],
                        payload["status"],
                        json.dumps(payload.get("result"), ensure_ascii=True, sort_keys=True),
                        payload.get("error"),
                        payload["created_at"],
                        payload["updated_at"],
                        payload.get("completed_at"),
                        payload["expires_at"],
                        payload.get("created_by"),
                    ),
                )
            return payload

        return self._tx_runner.run_in_tx(fn=_op)

    def get(self, *, job_id: str) -> dict[str, Any] | None:
        sql = f"""
            SELECT job_id, status, result, error, created_at, updated_at, completed_at, expires_at, created_by
            FROM {self._table_name}
            WHERE job_id = %s
            LIMIT 1
        """

        def _op(conn: Any) -> dict[str, Any] | None:
            with conn.cursor() as cur:
                cur.execute(sql, (job_id,))
                row = cur.fetchone()
            return self._row_to_job(row) if row is not None else None

        return self._tx_runner.run_in_tx(fn=_op)

    def update_if_active(self, *, job_id: str, fields: dict[str, Any]) -> dict[str, Any] | None:
        sql = f"""
            UPDATE {self._table_name}
            SET status = %s,
                result = %s::jsonb,
                error = %s,
                updated_at = %s,
                completed_at = %s
            WHERE job_id = %s AND status NOT IN ('completed', 'failed')
            RETURNING job_id, status, result, error, created_at, updated_at, completed_at, expires_at, created_by
        """

        def _op(conn: Any) -> dict[str, Any] | None:
            with conn.cursor() as cur:
                cur.execute(
                    sql,
                    (
                        fields["status"],
                        json.dumps(fields.get("result"), ensure_ascii=True, sort_keys=True),
                        fields.get("error"),
                        fields["updated_at"],
                        fields.get("completed_at"),
                        job_id,
                    ),
                )
                row = cur.fetchone()
            return self._row_to_job(row) if row is not None else None

        return self._tx_runner.run_in_tx(fn=_op)

    def delete(self, *, job_id: str) -> None:
        sql = f"DELETE FROM {self._table_name} WHERE job_id = %s"

        def _op(conn: Any) -> None:
            with conn.cursor() as cur:
                cur.execute(sql, (job_id,))

        self._tx_runner.run_in_tx(fn=_op)

    def delete_expired(self, *, now_iso: str) -> int:
        sql = f"DELETE FROM {self._table_name} WHERE expires_at <= %s"

        def _op(conn: Any) -> int:
            with conn.cursor() as cur:
                cur.execute(sql, (now_iso,))
                return int(cur.rowcount or 0)

        return self._tx_runner.run_in_tx(fn=_op)
