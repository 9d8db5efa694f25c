#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from event_requests.job_ledger import JobLedger
from event_requests.store import create_store_from_env


def main() -> int:
    parser = argparse.ArgumentParser(description="Delete job ledger entries past their expiry")
    parser.parse_args()
    store = create_store_from_env()
    removed = JobLedger(store).cleanup_expired_jobs()
    print(json.dumps({"backend": store.backend_name, "removed": removed}, ensure_ascii=True, sort_keys=True, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
