"""Background workers for matching runs.

All tasks are registered on ``workers.celery_app.celery_app``.
"""

from .celery_app import celery_app

__all__ = [
    "celery_app",
]
