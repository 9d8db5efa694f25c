from __future__ import annotations

import re
import threading
from collections.abc import Callable
from typing import Any

from event_requests.db.postgres import PostgresTxRunner, is_unique_violation
from event_requests.db.schema import iso_or_none
from event_requests.models import (
    ALLOWED_REQUEST_TRANSITIONS,
    RequestKey,
    RequestStatus,
    key_for_row,
    utcnow_iso,
)

_COLUMNS = (
    "request_id",
    "request_type",
    "sender_id",
    "target_user_id",
    "event_id",
    "video_id",
    "section_id",
    "role",
    "status",
    "message",
    "response_message",
    "responder_id",
    "current_level",
    "requested_level",
    "created_at",
    "updated_at",
    "responded_at",
)
_TIMESTAMP_COLUMNS = {"created_at", "updated_at", "responded_at"}


def _validate_identifier(name: str) -> str:
    if not re.fullmatch(r"[A-Za-z_][A-Za-z0-9_]*", name):
        raise ValueError(f"invalid SQL identifier: {name}")
    return name


def _check_transition(new_status: str) -> None:
    if new_status not in ALLOWED_REQUEST_TRANSITIONS[RequestStatus.PENDING.value]:
        raise ValueError(f"invalid request transition target: {new_status}")


class PendingRequestConflict(Exception):
    """Raised by ``create`` when a PENDING request already holds the key."""

    def __init__(self, existing: dict[str, Any] | None) -> None:
        super().__init__("pending request already exists")
        self.existing = existing


class InMemoryRequestsRepository:
    def __init__(self, requests: dict[str, dict[str, Any]], lock: threading.RLock | None = None) -> None:
        self._requests = requests
        self._lock = lock or threading.RLock()

    def _find_pending_locked(self, key: RequestKey) -> dict[str, Any] | None:
        for row in self._requests.values():
            if row["status"] == RequestStatus.PENDING.value and key.matches(row):
                return row
        return None

    def find_pending(self, key: RequestKey) -> dict[str, Any] | None:
        with self._lock:
            row = self._find_pending_locked(key)
            return dict(row) if row is not None else None

    def create(self, *, request: dict[str, Any]) -> dict[str, Any]:
        with self._lock:
            existing = self._find_pending_locked(key_for_row(request))
            if existing is not None:
                raise PendingRequestConflict(dict(existing))
            self._requests[str(request["request_id"])] = dict(request)
            return dict(request)

    def get(self, *, request_id: str) -> dict[str, Any] | None:
        with self._lock:
            row = self._requests.get(request_id)
            return dict(row) if row is not None else None

    def transition(
        self,
        *,
        request_id: str,
        new_status: str,
        responder_id: str | None = None,
        response_message: str | None = None,
        apply: Callable[[dict[str, Any]], Any] | None = None,
    ) -> dict[str, Any] | None:
        """Move a PENDING request to ``new_status``; None when it is no longer PENDING.

        ``apply`` runs under the same lock with the updated row. If it raises, the
        row is restored to PENDING and the error propagates.
        """
        _check_transition(new_status)
        with self._lock:
            row = self._requests.get(request_id)
            if row is None or row["status"] != RequestStatus.PENDING.value:
                return None
            previous = dict(row)
            now = utcnow_iso()
            row["status"] = new_status
            row["responder_id"] = responder_id
            row["response_message"] = response_message
            row["updated_at"] = now
            row["responded_at"] = now
            if apply is not None:
                try:
                    apply(dict(row))
                except Exception:
                    self._requests[request_id] = previous
                    raise
            return dict(self._requests[request_id])

    def list_pending(
        self,
        *,
        request_type: str | None = None,
        event_ids: list[str] | None = None,
    ) -> list[dict[str, Any]]:
        with self._lock:
            rows = [
                dict(row)
                for row in self._requests.values()
                if row["status"] == RequestStatus.PENDING.value
                and (request_type is None or row["request_type"] == request_type)
                and (event_ids is None or row.get("event_id") in event_ids)
            ]
        rows.sort(key=lambda x: x["created_at"], reverse=True)
        return rows

    def list_by_sender(
        self,
        *,
        sender_id: str,
        request_type: str | None = None,
        event_id: str | None = None,
        status: str | None = None,
    ) -> list[dict[str, Any]]:
        with self._lock:
            rows = [
                dict(row)
                for row in self._requests.values()
                if row["sender_id"] == sender_id
                and (request_type is None or row["request_type"] == request_type)
                and (event_id is None or row.get("event_id") == event_id)
                and (status is None or row["status"] == status)
            ]
        rows.sort(key=lambda x: x["created_at"], reverse=True)
        return rows


class PostgresRequestsRepository:
    """Requests repository for the postgres backend; uniqueness comes from a partial unique index."""

    def __init__(self, *, tx_runner: PostgresTxRunner, table_name: str = "workflow_requests") -> None:
        self._tx_runner = tx_runner
        self._table_name = _validate_identifier(table_name)

    @staticmethod
    def _row_to_request(row: Any) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for idx, column in enumerate(_COLUMNS):
            value = row[idx]
            out[column] = iso_or_none(value) if column in _TIMESTAMP_COLUMNS else value
        return out

    def _select(self, where: str, params: tuple[Any, ...], *, suffix: str = "") -> list[dict[str, Any]]:
        sql = f"""
            SELECT {", ".join(_COLUMNS)}
            FROM {self._table_name}
            WHERE {where}
            {suffix}
        """

        def _op(conn: Any) -> list[dict[str, Any]]:
            with conn.cursor() as cur:
                cur.execute(sql, params)
                rows = cur.fetchall()
            return [self._row_to_request(row) for row in rows]

        return self._tx_runner.run_in_tx(fn=_op)

    def find_pending(self, key: RequestKey) -> dict[str, Any] | None:
        rows = self._select(
            """
            request_type = %s
              AND sender_id = %s
              AND COALESCE(target_user_id, '') = %s
              AND COALESCE(event_id, '') = %s
              AND COALESCE(video_id, '') = %s
              AND COALESCE(section_id, '') = %s
              AND COALESCE(role, '') = %s
              AND status = 'PENDING'
            """,
            key.as_tuple(),
            suffix="LIMIT 1",
        )
        return rows[0] if rows else None

    def create(self, *, request: dict[str, Any]) -> dict[str, Any]:
        payload = dict(request)
        placeholders = ", ".join(["%s"] * len(_COLUMNS))
        sql = f"INSERT INTO {self._table_name} ({', '.join(_COLUMNS)}) VALUES ({placeholders})"

        def _op(conn: Any) -> dict[str, Any]:
            with conn.cursor() as cur:
                cur.execute(sql, tuple(payload.get(column) for column in _COLUMNS))
            return payload

        try:
            return self._tx_runner.run_in_tx(fn=_op)
        except Exception as exc:
            if is_unique_violation(exc):
                raise PendingRequestConflict(self.find_pending(key_for_row(payload))) from exc
            raise

    def get(self, *, request_id: str) -> dict[str, Any] | None:
        rows = self._select("request_id = %s", (request_id,), suffix="LIMIT 1")
        return rows[0] if rows else None

    def transition(
        self,
        *,
        request_id: str,
        new_status: str,
        responder_id: str | None = None,
        response_message: str | None = None,
        apply: Callable[[dict[str, Any]], Any] | None = None,
    ) -> dict[str, Any] | None:
        _check_transition(new_status)
        sql = f"""
            UPDATE {self._table_name}
            SET status = %s,
                responder_id = %s,
                response_message = %s,
                updated_at = now(),
                responded_at = now()
            WHERE request_id = %s AND status = 'PENDING'
            RETURNING {", ".join(_COLUMNS)}
        """

        def _op(conn: Any) -> dict[str, Any] | None:
            with conn.cursor() as cur:
                cur.execute(sql, (new_status, responder_id, response_message, request_id))
                row = cur.fetchone()
            if row is None:
                return None
            updated = self._row_to_request(row)
            # raising here skips the commit, so the row stays PENDING
            if apply is not None:
                apply(dict(updated))
            return updated

        return self._tx_runner.run_in_tx(fn=_op)

    def list_pending(
        self,
        *,
        request_type: str | None = None,
        event_ids: list[str] | None = None,
    ) -> list[dict[str, Any]]:
        clauses = ["status = 'PENDING'"]
        params: list[Any] = []
        if request_type is not None:
            clauses.append("request_type = %s")
            params.append(request_type)
        if event_ids is not None:
            clauses.append("event_id = ANY(%s)")
            params.append(list(event_ids))
        return self._select(" AND ".join(clauses), tuple(params), suffix="ORDER BY created_at DESC")

    def list_by_sender(
        self,
        *,
        sender_id: str,
        request_type: str | None = None,
        event_id: str | None = None,
        status: str | None = None,
    ) -> list[dict[str, Any]]:
        clauses = ["sender_id = %s"]
        params: list[Any] = [sender_id]
        if request_type is not None:
            clauses.append("request_type = %s")
            params.append(request_type)
        if event_id is not None:
            clauses.append("event_id = %s")
            params.append(event_id)
        if status is not None:
            clauses.append("status = %s")
            params.append(status)
        return self._select(" AND ".join(clauses), tuple(params), suffix="ORDER BY created_at DESC")
