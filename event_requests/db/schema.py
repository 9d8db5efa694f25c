from __future__ import annotations

import re
from typing import Any

from event_requests.db.postgres import _import_psycopg


def _validate_identifier(name: str) -> str:
    if not re.fullmatch(r"[A-Za-z_][A-Za-z0-9_]*", name):
        raise ValueError(f"invalid SQL identifier: {name}")
    return name


class PostgresSchemaManager:
    """Create workflow tables and the pending-request uniqueness index."""

    def __init__(
        self,
        dsn: str,
        *,
        requests_table: str = "workflow_requests",
        notifications_table: str = "notifications",
        jobs_table: str = "workflow_jobs",
    ) -> None:
        if not dsn.strip():
            raise ValueError("POSTGRES_DSN must not be empty")
        self._dsn = dsn.strip()
        self._requests = _validate_identifier(requests_table)
        self._notifications = _validate_identifier(notifications_table)
        self._jobs = _validate_identifier(jobs_table)

    def statements(self) -> list[str]:
        return [
            f"""
            CREATE TABLE IF NOT EXISTS {self._requests} (
                request_id TEXT PRIMARY KEY,
                request_type TEXT NOT NULL,
                sender_id TEXT NOT NULL,
                target_user_id TEXT,
                event_id TEXT,
                video_id TEXT,
                section_id TEXT,
                role TEXT,
                status TEXT NOT NULL,
                message TEXT,
                response_message TEXT,
                responder_id TEXT,
                current_level INTEGER,
                requested_level INTEGER,
                created_at TIMESTAMPTZ NOT NULL,
                updated_at TIMESTAMPTZ NOT NULL,
                responded_at TIMESTAMPTZ
            )
            """,
            f"""
            CREATE UNIQUE INDEX IF NOT EXISTS {self._requests}_pending_key
            ON {self._requests} (
                request_type,
                sender_id,
                COALESCE(target_user_id, ''),
                COALESCE(event_id, ''),
                COALESCE(video_id, ''),
                COALESCE(section_id, ''),
                COALESCE(role, '')
            )
            WHERE status = 'PENDING'
            """,
            f"CREATE INDEX IF NOT EXISTS {self._requests}_event_status ON {self._requests} (event_id, status)",
            f"CREATE INDEX IF NOT EXISTS {self._requests}_sender ON {self._requests} (sender_id, created_at DESC)",
            f"""
            CREATE TABLE IF NOT EXISTS {self._notifications} (
                notification_id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                type TEXT NOT NULL,
                title TEXT NOT NULL,
                message TEXT NOT NULL,
                related_request_type TEXT,
                related_request_id TEXT,
                is_old BOOLEAN NOT NULL DEFAULT FALSE,
                created_at TIMESTAMPTZ NOT NULL
            )
            """,
            f"""
            CREATE INDEX IF NOT EXISTS {self._notifications}_user_created
            ON {self._notifications} (user_id, created_at DESC)
            """,
            f"""
            CREATE TABLE IF NOT EXISTS {self._jobs} (
                job_id TEXT PRIMARY KEY,
                status TEXT NOT NULL,
                result JSONB,
                error TEXT,
                created_at TIMESTAMPTZ NOT NULL,
                updated_at TIMESTAMPTZ NOT NULL,
                completed_at TIMESTAMPTZ,
                expires_at TIMESTAMPTZ NOT NULL,
                created_by TEXT
            )
            """,
        ]

    def apply(self) -> list[str]:
        psycopg = _import_psycopg()
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                for statement in self.statements():
                    cur.execute(statement)
            conn.commit()
        return [self._requests, self._notifications, self._jobs]


def iso_or_none(value: Any) -> str | None:
    if value is None:
        return None
    isoformat = getattr(value, "isoformat", None)
    if callable(isoformat):
        return isoformat()
    return str(value)
