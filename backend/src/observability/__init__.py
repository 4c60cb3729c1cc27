"""Observability module for the matching service.

Provides structured logging with run correlation and Prometheus metrics.
"""

from .logging_config import configure_logging, JSONFormatter, RunIDFilter
from .metrics import (
    matching_runs_total,
    matching_run_duration_seconds,
    matching_candidates_total,
    factor_defaults_total,
    match_score_histogram,
    events_published_total,
)
from .run_context import run_id_var, get_run_id, generate_run_id, run_context

__all__ = [
    # Logging
    "configure_logging",
    "JSONFormatter",
    "RunIDFilter",
    # Metrics
    "matching_runs_total",
    "matching_run_duration_seconds",
    "matching_candidates_total",
    "factor_defaults_total",
    "match_score_histogram",
    "events_published_total",
    # Run ID
    "run_id_var",
    "get_run_id",
    "generate_run_id",
    "run_context",
]
