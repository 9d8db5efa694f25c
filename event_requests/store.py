from __future__ import annotations

import logging
import os
import threading
from collections.abc import Mapping
from typing import Any

from event_requests.db.postgres import PostgresTxRunner
from event_requests.db.schema import PostgresSchemaManager
from event_requests.repositories.jobs import InMemoryJobsRepository, PostgresJobsRepository
from event_requests.repositories.notifications import (
    InMemoryNotificationsRepository,
    PostgresNotificationsRepository,
)
from event_requests.repositories.requests import InMemoryRequestsRepository, PostgresRequestsRepository
from event_requests.repositories.resources import InMemoryResourceGraph
from event_requests.runtime_profile import postgres_schema_apply, true_stack_required

logger = logging.getLogger(__name__)


class InMemoryStore:
    JOB_TTL_SECONDS = 3600
    NOTIFICATION_LIST_LIMIT = 50
    NOTIFICATION_LIST_LIMIT_MAX = 200

    def __init__(self) -> None:
        self.job_ttl_seconds = self._env_int("EVR_JOB_TTL_SECONDS", default=self.JOB_TTL_SECONDS, minimum=1)
        self.notification_list_limit = min(
            self.NOTIFICATION_LIST_LIMIT_MAX,
            self._env_int("EVR_NOTIFICATION_LIST_LIMIT", default=self.NOTIFICATION_LIST_LIMIT, minimum=1),
        )
        self._lock = threading.RLock()
        self.requests: dict[str, dict[str, Any]] = {}
        self.notifications: list[dict[str, Any]] = []
        self.jobs: dict[str, dict[str, Any]] = {}
        self.resources = InMemoryResourceGraph()
        self._bind_repositories()

    @staticmethod
    def _env_int(name: str, *, default: int, minimum: int = 0) -> int:
        raw = os.environ.get(name, "").strip()
        if not raw:
            return default
        try:
            value = int(raw)
        except ValueError:
            return default
        return max(minimum, value)

    @property
    def backend_name(self) -> str:
        return "memory"

    def _bind_repositories(self) -> None:
        self.requests_repository = InMemoryRequestsRepository(self.requests, self._lock)
        self.notifications_repository = InMemoryNotificationsRepository(self.notifications, self._lock)
        self.jobs_repository = InMemoryJobsRepository(self.jobs, self._lock)

    def reset(self) -> None:
        with self._lock:
            self.requests.clear()
            self.notifications.clear()
            self.jobs.clear()
        self.resources.reset()


class PostgresBackedStore(InMemoryStore):
    """Requests, notifications and jobs in PostgreSQL; the resource graph stays in process."""

    def __init__(
        self,
        *,
        dsn: str,
        apply_schema: bool = False,
        requests_table: str = "workflow_requests",
        notifications_table: str = "notifications",
        jobs_table: str = "workflow_jobs",
    ) -> None:
        self._tx_runner = PostgresTxRunner(dsn)
        self._schema = PostgresSchemaManager(
            dsn,
            requests_table=requests_table,
            notifications_table=notifications_table,
            jobs_table=jobs_table,
        )
        self._tables = (requests_table, notifications_table, jobs_table)
        if apply_schema:
            applied = self._schema.apply()
            logger.info("postgres_schema_applied tables=%s", ",".join(applied))
        super().__init__()

    @property
    def backend_name(self) -> str:
        return "postgres"

    def _bind_repositories(self) -> None:
        requests_table, notifications_table, jobs_table = self._tables
        self.requests_repository = PostgresRequestsRepository(tx_runner=self._tx_runner, table_name=requests_table)
        self.notifications_repository = PostgresNotificationsRepository(
            tx_runner=self._tx_runner,
            table_name=notifications_table,
        )
        self.jobs_repository = PostgresJobsRepository(tx_runner=self._tx_runner, table_name=jobs_table)

    def reset(self) -> None:
        statement = f"TRUNCATE {', '.join(self._tables)}"

        def _op(conn: Any) -> None:
            with conn.cursor() as cur:
                cur.execute(statement)

        self._tx_runner.run_in_tx(fn=_op)
        self.resources.reset()


def create_store_from_env(environ: Mapping[str, str] | None = None) -> InMemoryStore:
    env = os.environ if environ is None else environ
    backend = env.get("EVR_STORE_BACKEND", "memory").strip().lower()
    if true_stack_required(env) and backend != "postgres":
        raise RuntimeError("EVR_STORE_BACKEND must be postgres when EVR_REQUIRE_TRUESTACK=true")
    if backend == "postgres":
        dsn = env.get("POSTGRES_DSN", "").strip()
        if not dsn:
            raise ValueError("POSTGRES_DSN must be set when EVR_STORE_BACKEND=postgres")
        return PostgresBackedStore(
            dsn=dsn,
            apply_schema=postgres_schema_apply(env),
            requests_table=env.get("EVR_REQUESTS_TABLE", "workflow_requests"),
            notifications_table=env.get("EVR_NOTIFICATIONS_TABLE", "notifications"),
            jobs_table=env.get("EVR_JOBS_TABLE", "workflow_jobs"),
        )
    if backend != "memory":
        raise ValueError(f"unsupported EVR_STORE_BACKEND: {backend}")
    return InMemoryStore()


store = create_store_from_env()
