"""Prometheus metrics for the matching engine.

Defines operational metrics for monitoring and alerting.
"""

from prometheus_client import Counter, Histogram

# Matching run metrics
matching_runs_total = Counter(
    "findbearings_matching_runs_total",
    "Total matching runs",
    ["outcome"]  # outcome: matched|empty|degraded|not_found
)

matching_run_duration_seconds = Histogram(
    "findbearings_matching_run_duration_seconds",
    "Wall-clock duration of a matching run in seconds",
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0]
)

matching_candidates_total = Counter(
    "findbearings_matching_candidates_total",
    "Candidates processed by matching runs",
    ["outcome"]  # outcome: scored|failed|timed_out|persisted|duplicate|persist_failed
)

factor_defaults_total = Counter(
    "findbearings_factor_defaults_total",
    "Factor scores that fell back to their neutral default",
    ["factor"]
)

match_score_histogram = Histogram(
    "findbearings_match_score",
    "Composite match score distribution",
    buckets=[0.0, 0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7, 0.8, 0.9, 1.0]
)

# Event metrics
events_published_total = Counter(
    "findbearings_events_published_total",
    "Domain events handed to the publisher",
    ["topic", "status"]  # status: success|error
)
