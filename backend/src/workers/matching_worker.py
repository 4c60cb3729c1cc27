"""Matching Worker - run demand matching in the background.

Celery task wrapping DemandMatchService.run_matching. The result is the
run summary dict, so it is JSON serializable for the result backend.
"""

import logging
from typing import Any, Dict

from celery import Task
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from config import get_settings
from database import get_db_session
from events.publisher import EventPublisherPort
from infrastructure.events import RedisEventPublisher
from infrastructure.suppliers import SupplierServiceClient
from matching.orchestrator import MatchingOrchestrator
from matching.ports import DemandNotFoundError
from matching.repository import MatchRepository
from matching.service import DemandMatchService
from .celery_app import celery_app

logger = logging.getLogger(__name__)

_supplier_client = None
_event_publisher = None


def get_supplier_client() -> SupplierServiceClient:
    """Process-wide supplier client (httpx connection pool is reused)."""
    global _supplier_client
    if _supplier_client is None:
        _supplier_client = SupplierServiceClient.from_settings(get_settings())
    return _supplier_client


def get_event_publisher() -> EventPublisherPort:
    global _event_publisher
    if _event_publisher is None:
        settings = get_settings()
        _event_publisher = RedisEventPublisher.from_url(
            settings.REDIS_URL, settings.EVENTS_CHANNEL_PREFIX
        )
    return _event_publisher


def build_matching_service(session: Session) -> DemandMatchService:
    """Wire a DemandMatchService from settings for one task execution."""
    settings = get_settings()
    client = get_supplier_client()
    repository = MatchRepository(session)
    orchestrator = MatchingOrchestrator(
        repository,
        directory=client,
        catalog=client,
        max_workers=settings.MATCH_MAX_WORKERS,
        run_deadline_seconds=settings.MATCH_RUN_DEADLINE_SECONDS,
    )
    return DemandMatchService(repository, orchestrator, get_event_publisher())


class MatchingTask(Task):
    """Base task class for matching runs with retry configuration.

    Retry policy:
    - Max retries: 3
    - Backoff: Exponential
    - Retry on: database connectivity errors
    - No retry on: DemandNotFoundError (permanent failure)
    """
    autoretry_for = (OperationalError,)
    retry_kwargs = {'max_retries': 3, 'countdown': 5}
    retry_backoff = True
    retry_backoff_max = 300
    retry_jitter = True


@celery_app.task(base=MatchingTask, bind=True)
def run_demand_matching(self: Task, demand_id: int) -> Dict[str, Any]:
    """Run matching for one demand.

    Args:
        demand_id: Demand to match

    Returns:
        Run summary (see MatchRunResult.to_dict)

    Raises:
        DemandNotFoundError: If the demand does not exist (not retried)

    Example:
        >>> run_demand_matching.delay(demand_id=42)
    """
    try:
        with get_db_session() as session:
            service = build_matching_service(session)
            result = service.run_matching(int(demand_id))
            return result.to_dict()
    except DemandNotFoundError:
        logger.error(f"Matching task for demand {demand_id} failed: demand not found",
                     extra={"demand_id": demand_id})
        raise
