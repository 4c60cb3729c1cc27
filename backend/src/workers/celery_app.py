"""Celery application for background matching runs."""

from celery import Celery
from celery.signals import setup_logging

from config import get_settings
from observability.logging_config import configure_logging

settings = get_settings()

celery_app = Celery(
    "findbearings_matching",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["workers.matching_worker"],
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
)


@setup_logging.connect
def configure_worker_logging(**kwargs):
    """Replace Celery's logging setup with the structured JSON handler."""
    configure_logging(settings.LOG_LEVEL, settings.LOG_JSON)
