from __future__ import annotations

from collections.abc import Mapping
import os


def _as_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


def true_stack_required(environ: Mapping[str, str] | None = None) -> bool:
    """Production profile: the in-memory request store is not acceptable."""
    env = os.environ if environ is None else environ
    return _as_bool(env.get("EVR_REQUIRE_TRUESTACK", "false"))


def postgres_schema_apply(environ: Mapping[str, str] | None = None) -> bool:
    env = os.environ if environ is None else environ
    return _as_bool(env.get("EVR_POSTGRES_SCHEMA_APPLY", "false"))
