from __future__ import annotations

import re
import threading
from typing import Any

from event_requests.db.postgres import PostgresTxRunner
from event_requests.db.schema import iso_or_none

_COLUMNS = (
    "notification_id",
    "user_id",
    "type",
    "title",
    "message",
    "related_request_type",
    "related_request_id",
    "is_old",
    "created_at",
)


def _validate_identifier(name: str) -> str:
    if not re.fullmatch(r"[A-Za-z_][A-Za-z0-9_]*", name):
        raise ValueError(f"invalid SQL identifier: {name}")
    return name


class InMemoryNotificationsRepository:
    def __init__(self, notifications: list[dict[str, Any]], lock: threading.RLock | None = None) -> None:
        self._notifications = notifications
        self._lock = lock or threading.RLock()

    def append(self, *, notification: dict[str, Any]) -> dict[str, Any]:
        with self._lock:
            self._notifications.append(dict(notification))
        return dict(notification)

    def get(self, *, notification_id: str) -> dict[str, Any] | None:
        with self._lock:
            for row in self._notifications:
                if row["notification_id"] == notification_id:
                    return dict(row)
        return None

    def list_for_user(self, *, user_id: str, limit: int = 50, is_old: bool | None = None) -> list[dict[str, Any]]:
        with self._lock:
            indexed = [
                (row["created_at"], idx, dict(row))
                for idx, row in enumerate(self._notifications)
                if row["user_id"] == user_id and (is_old is None or bool(row["is_old"]) == is_old)
            ]
        # insertion order breaks created_at ties
        indexed.sort(key=lambda x: (x[0], x[1]), reverse=True)
        return [row for _, _, row in indexed[: max(0, int(limit))]]

    def count_new(self, *, user_id: str) -> int:
        with self._lock:
            return sum(1 for row in self._notifications if row["user_id"] == user_id and not row["is_old"])

    def mark_old(self, *, user_id: str, notification_id: str) -> dict[str, Any] | None:
        with self._lock:
            for row in self._notifications:
                if row["notification_id"] == notification_id and row["user_id"] == user_id:
                    row["is_old"] = True
                    return dict(row)
        return None

    def mark_all_old(self, *, user_id: str) -> int:
        updated = 0
        with self._lock:
            for row in self._notifications:
                if row["user_id"] == user_id and not row["is_old"]:
                    row["is_old"] = True
                    updated += 1
        return updated


class PostgresNotificationsRepository:
    def __init__(self, *, tx_runner: PostgresTxRunner, table_name: str = "notifications") -> None:
        self._tx_runner = tx_runner
        self._table_name = _validate_identifier(table_name)

    @staticmethod
    def _row_to_notification(row: Any) -> dict[str, Any]:
        return {
            "notification_id": row[0],
            "user_id": row[1],
            "type": row[2],
            "title": row[3],
            "message": row[4],
            "related_request_type": row[5],
            "related_request_id": row[6],
            "is_old": bool(row[7]),
            "created_at": iso_or_none(row[8]),
        }

    def append(self, *, notification: dict[str, Any]) -> dict[str, Any]:
        payload = dict(notification)
        placeholders = ", ".join(["%s"] * len(_COLUMNS))
        sql = f"INSERT INTO {self._table_name} ({', '.join(_COLUMNS)}) VALUES ({placeholders})"

        def _op(conn: Any) -> dict[str, Any]:
            with conn.cursor() as cur:
                cur.execute(sql, tuple(payload.get(column) for column in _COLUMNS))
            return payload

        return self._tx_runner.run_in_tx(fn=_op)

    def get(self, *, notification_id: str) -> dict[str, Any] | None:
        sql = f"""
            SELECT {", ".join(_COLUMNS)}
            FROM {self._table_name}
            WHERE notification_id = %s
            LIMIT 1
        """

        def _op(conn: Any) -> dict[str, Any] | None:
            with conn.cursor() as cur:
                cur.execute(sql, (notification_id,))
                row = cur.fetchone()
            return self._row_to_notification(row) if row is not None else None

        return self._tx_runner.run_in_tx(fn=_op)

    def list_for_user(self, *, user_id: str, limit: int = 50, is_old: bool | None = None) -> list[dict[str, Any]]:
        where = "user_id = %s"
        params: list[Any] = [user_id]
        if is_old is not None:
            where += " AND is_old = %s"
            params.append(is_old)
        params.append(max(0, int(limit)))
        sql = f"""
            SELECT {", ".join(_COLUMNS)}
            FROM {self._table_name}
            WHERE {where}
            ORDER BY created_at DESC
            LIMIT %s
        """

        def _op(conn: Any) -> list[dict[str, Any]]:
            with conn.cursor() as cur:
                cur.execute(sql, tuple(params))
                rows = cur.fetchall()
            return [self._row_to_notification(row) for row in rows]

        return self._tx_runner.run_in_tx(fn=_op)

    def count_new(self, *, user_id: str) -> int:
        sql = f"SELECT COUNT(*) FROM {self._table_name} WHERE user_id = %s AND is_old = FALSE"

        def _op(conn: Any) -> int:
            with conn.cursor() as cur:
                cur.execute(sql, (user_id,))
                row = cur.fetchone()
            return int(row[0]) if row else 0

        return self._tx_runner.run_in_tx(fn=_op)

    def mark_old(self, *, user_id: str, notification_id: str) -> dict[str, Any] | None:
        sql = f"""
            UPDATE {self._table_name}
            SET is_old = TRUE
            WHERE notification_id = %s AND user_id = %s
            RETURNING {", ".join(_COLUMNS)}
        """

        def _op(conn: Any) -> dict[str, Any] | None:
            with conn.cursor() as cur:
                cur.execute(sql, (notification_id, user_id))
                row = cur.fetchone()
            return self._row_to_notification(row) if row is not None else None

        return self._tx_runner.run_in_tx(fn=_op)

    def mark_all_old(self, *, user_id: str) -> int:
        sql = f"UPDATE {self._table_name} SET is_old = TRUE WHERE user_id = %s AND is_old = FALSE"

        def _op(conn: Any) -> int:
            with conn.cursor() as cur:
                cur.execute(sql, (user_id,))
                return int(cur.rowcount or 0)

        return self._tx_runner.run_in_tx(fn=_op)
