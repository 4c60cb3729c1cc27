"""Matching run ID management for log correlation.

A run ID is set once per matching run and read by the logging filter.
Worker threads see it because the orchestrator submits scoring tasks
through ``contextvars.copy_context()``.
"""

import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

# Context variable for run_id (thread- and async-safe)
run_id_var: ContextVar[Optional[str]] = ContextVar("run_id", default=None)


def generate_run_id() -> str:
    """Generate a new unique run ID.

    Returns:
        str: UUID v4 run ID
    """
    return str(uuid.uuid4())


def get_run_id() -> str:
    """Get current run ID from context.

    Returns:
        str: Current run ID or "no-run-id" if not set
    """
    return run_id_var.get() or "no-run-id"


@contextmanager
def run_context(run_id: Optional[str] = None) -> Iterator[str]:
    """Bind a run ID to the current context for the duration of a block.

    Args:
        run_id: Run ID to bind; a new one is generated when omitted

    Yields:
        str: The bound run ID
    """
    run_id = run_id or generate_run_id()
    token = run_id_var.set(run_id)
    try:
        yield run_id
    finally:
        run_id_var.reset(token)
