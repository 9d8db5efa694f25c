#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from event_requests.db.schema import PostgresSchemaManager


def main() -> int:
    parser = argparse.ArgumentParser(description="Create workflow request, notification and job tables")
    parser.add_argument("--dsn", default=os.getenv("POSTGRES_DSN", ""), help="PostgreSQL DSN")
    parser.add_argument("--requests-table", default=os.getenv("EVR_REQUESTS_TABLE", "workflow_requests"))
    parser.add_argument("--notifications-table", default=os.getenv("EVR_NOTIFICATIONS_TABLE", "notifications"))
    parser.add_argument("--jobs-table", default=os.getenv("EVR_JOBS_TABLE", "workflow_jobs"))
    parser.add_argument("--print-only", action="store_true", help="print DDL without connecting")
    args = parser.parse_args()

    dsn = str(args.dsn or "").strip()
    if not dsn and not args.print_only:
        raise SystemExit("POSTGRES_DSN is required (pass --dsn or set env)")

    manager = PostgresSchemaManager(
        dsn or "postgresql://print-only",
        requests_table=args.requests_table,
        notifications_table=args.notifications_table,
        jobs_table=args.jobs_table,
    )
    if args.print_only:
        for statement in manager.statements():
            print(" ".join(statement.split()) + ";")
        return 0

    applied = manager.apply()
    print(json.dumps({"applied_tables": applied, "count": len(applied)}, ensure_ascii=True, sort_keys=True, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
