"""Prometheus metrics for session lifecycle and index maintenance."""

from prometheus_client import Counter, Histogram

SESSIONS_CREATED = Counter(
    "omnisession_sessions_created_total",
    "Sessions inserted by the lifecycle controller",
    labelnames=["channel"],
)

SESSIONS_DEACTIVATED = Counter(
    "omnisession_sessions_deactivated_total",
    "Sessions moved to a terminal inactive state",
    labelnames=["reason"],
)

SESSION_CREATE_CONFLICTS = Counter(
    "omnisession_session_create_conflicts_total",
    "Unique-index conflicts hit while inserting a session",
    labelnames=["outcome"],
)

SESSION_CREATE_RACES = Counter(
    "omnisession_session_create_races_total",
    "get_or_create calls that exhausted their attempts",
)

INDEX_MIGRATION_RUNS = Counter(
    "omnisession_index_migration_runs_total",
    "Startup index migration runs",
    labelnames=["outcome"],
)

GET_OR_CREATE_LATENCY = Histogram(
    "omnisession_get_or_create_latency_seconds",
    "Latency of get_or_create",
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)
