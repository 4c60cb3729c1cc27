"""Matching orchestrator: discover, score, rank, persist, summarize.

Pipeline per run:
1. Resolve the demand (missing demand is the only error raised)
2. Discover candidate suppliers
3. Score every candidate concurrently on a bounded thread pool
4. Rank by score desc, supplier_id asc
5. Persist row by row
6. Return a MatchRunResult

Scoring is bounded by a run deadline. When it expires the cancel flag is
set, queued candidates never start, in-flight ones are dropped, and the
candidates already scored are still ranked and persisted.
"""

import contextvars
import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy.exc import SQLAlchemyError

from observability.metrics import (
    matching_candidates_total,
    matching_run_duration_seconds,
    matching_runs_total,
    match_score_histogram,
)
from observability.run_context import run_context
from .discovery import CandidateDiscovery
from .factors import FactorScorer, ScoringContext, default_factors
from .ports import (
    DemandCriteria,
    DemandNotFoundError,
    MatchCandidate,
    MatchRunResult,
    ProductCatalogPort,
    ScoringCancelled,
    SupplierDirectoryPort,
)
from .repository import MatchRepository
from .scorer import MatchScorer

logger = logging.getLogger(__name__)


def rank_candidates(candidates: Sequence[MatchCandidate]) -> List[MatchCandidate]:
    """Sort by composite score descending, ties by ascending supplier_id."""
    return sorted(candidates, key=lambda c: (-c.score, c.supplier_id))


class MatchingOrchestrator:
    """Drive one matching run end to end.

    Example:
        orchestrator = MatchingOrchestrator(repository, client, client)
        result = orchestrator.match(demand_id=42)
        print(result.total_matched, [m.supplier_id for m in result.matches])
    """

    def __init__(
        self,
        repository: MatchRepository,
        directory: SupplierDirectoryPort,
        catalog: ProductCatalogPort,
        scorer: Optional[MatchScorer] = None,
        factors: Optional[List[FactorScorer]] = None,
        max_workers: int = 8,
        run_deadline_seconds: float = 30.0,
    ):
        """Initialize orchestrator.

        Args:
            repository: Match repository (only writer of shared state)
            directory: Supplier directory port
            catalog: Product catalog port
            scorer: Score aggregator (default weight table when omitted)
            factors: Factor scorers (the four default factors when omitted)
            max_workers: Upper bound on concurrently scored candidates
            run_deadline_seconds: Deadline for the scoring phase
        """
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        if run_deadline_seconds <= 0:
            raise ValueError("run_deadline_seconds must be positive")

        self.repository = repository
        self.directory = directory
        self.catalog = catalog
        self.discovery = CandidateDiscovery(directory)
        self.scorer = scorer or MatchScorer()
        self.factors = factors if factors is not None else default_factors()
        self.max_workers = max_workers
        self.run_deadline_seconds = run_deadline_seconds

    def match(self, demand_id: int, run_id: Optional[str] = None) -> MatchRunResult:
        """Run matching for one demand.

        Args:
            demand_id: Demand to match
            run_id: Correlation ID (generated when omitted)

        Returns:
            MatchRunResult with the ranked, persisted matches

        Raises:
            DemandNotFoundError: If the demand does not exist
        """
        with run_context(run_id) as bound_run_id:
            started = time.monotonic()

            demand = self.repository.get_demand(demand_id)
            if demand is None:
                matching_runs_total.labels(outcome="not_found").inc()
                logger.warning(f"Demand {demand_id} not found", extra={"demand_id": demand_id})
                raise DemandNotFoundError(demand_id)

            criteria = DemandCriteria.from_demand(demand)
            logger.info(
                f"Matching run started for demand {demand_id} "
                f"(bearing {criteria.bearing_number})",
                extra={"demand_id": demand_id},
            )

            discovery = self.discovery.find_candidates(criteria)
            if discovery.is_empty:
                outcome = "degraded" if discovery.degraded else "empty"
                logger.info(
                    f"No candidates for demand {demand_id} ({outcome}), run ends with zero matches",
                    extra={"demand_id": demand_id},
                )
                return self._finish(
                    bound_run_id, demand_id, [], started, outcome,
                    discovery_degraded=discovery.degraded,
                )

            scored, dropped, deadline_exceeded = self._score_all(criteria, discovery.supplier_ids)
            ranked = rank_candidates(scored)
            persisted, write_failures = self._persist(demand_id, ranked)
            dropped.extend(write_failures)

            return self._finish(
                bound_run_id, demand_id, persisted, started,
                "matched" if persisted else "empty",
                dropped=dropped,
                deadline_exceeded=deadline_exceeded,
            )

    # Scoring

    def score_candidate(
        self,
        criteria: DemandCriteria,
        supplier_id: int,
        cancel_event: Optional[threading.Event] = None,
    ) -> MatchCandidate:
        """Score one candidate across all factors and aggregate.

        Raises:
            ScoringCancelled: If the run deadline passed mid-scoring
        """
        ctx = ScoringContext(criteria, supplier_id, self.directory, self.catalog, cancel_event)

        values: Dict[str, float] = {}
        flags: List[str] = []
        defaulted: List[str] = []
        for factor in self.factors:
            result = factor.evaluate(ctx)
            values[result.name] = result.value
            flags.extend(result.flags)
            if result.defaulted:
                defaulted.append(result.name)

        breakdown = self.scorer.score(values)
        return MatchCandidate(
            supplier_id=supplier_id,
            supplier_name=ctx.supplier_name(),
            score=breakdown.score,
            primary_reason=breakdown.primary_reason,
            strengths=breakdown.strengths,
            factors=breakdown.factors,
            flags=flags,
            defaulted=defaulted,
        )

    def _score_all(
        self,
        criteria: DemandCriteria,
        supplier_ids: List[int],
    ) -> Tuple[List[MatchCandidate], List[int], bool]:
        cancel_event = threading.Event()
        pool = ThreadPoolExecutor(
            max_workers=min(self.max_workers, len(supplier_ids)),
            thread_name_prefix="match-score",
        )
        futures: Dict[Future, int] = {}
        done, not_done = set(), set()
        try:
            for supplier_id in supplier_ids:
                # One context copy per task so run_id reaches the worker thread
                ctx = contextvars.copy_context()
                future = pool.submit(ctx.run, self.score_candidate, criteria, supplier_id, cancel_event)
                futures[future] = supplier_id

            done, not_done = wait(futures, timeout=self.run_deadline_seconds)
        finally:
            if not_done or len(done) != len(futures):
                cancel_event.set()
            pool.shutdown(wait=False, cancel_futures=True)

        deadline_exceeded = bool(not_done)

        scored: List[MatchCandidate] = []
        dropped: List[int] = []

        for future, supplier_id in futures.items():
            if future not in done:
                dropped.append(supplier_id)
                matching_candidates_total.labels(outcome="timed_out").inc()
                continue
            try:
                candidate = future.result()
            except ScoringCancelled:
                dropped.append(supplier_id)
                matching_candidates_total.labels(outcome="timed_out").inc()
                continue
            except Exception as e:
                logger.error(
                    f"Scoring failed for supplier {supplier_id}, candidate dropped: {e}",
                    exc_info=True,
                    extra={"demand_id": criteria.demand_id, "supplier_id": supplier_id},
                )
                dropped.append(supplier_id)
                matching_candidates_total.labels(outcome="failed").inc()
                continue

            matching_candidates_total.labels(outcome="scored").inc()
            match_score_histogram.observe(candidate.score)
            scored.append(candidate)

        if deadline_exceeded:
            logger.warning(
                f"Run deadline of {self.run_deadline_seconds}s reached for demand "
                f"{criteria.demand_id}: {len(not_done)} of {len(futures)} candidates dropped",
                extra={"demand_id": criteria.demand_id},
            )

        return scored, dropped, deadline_exceeded

    # Persistence

    def _persist(
        self,
        demand_id: int,
        ranked: List[MatchCandidate],
    ) -> Tuple[List[MatchCandidate], List[int]]:
        persisted: List[MatchCandidate] = []
        failed: List[int] = []

        for candidate in ranked:
            try:
                inserted = self.repository.upsert(demand_id, candidate)
            except SQLAlchemyError as e:
                logger.error(
                    f"Failed to persist match for supplier {candidate.supplier_id}: {e}",
                    exc_info=True,
                    extra={"demand_id": demand_id, "supplier_id": candidate.supplier_id},
                )
                failed.append(candidate.supplier_id)
                matching_candidates_total.labels(outcome="persist_failed").inc()
                continue

            matching_candidates_total.labels(outcome="persisted" if inserted else "duplicate").inc()
            persisted.append(candidate)

        return persisted, failed

    def _finish(
        self,
        run_id: str,
        demand_id: int,
        matches: List[MatchCandidate],
        started: float,
        outcome: str,
        discovery_degraded: bool = False,
        dropped: Optional[List[int]] = None,
        deadline_exceeded: bool = False,
    ) -> MatchRunResult:
        elapsed = time.monotonic() - started
        matching_runs_total.labels(outcome=outcome).inc()
        matching_run_duration_seconds.observe(elapsed)

        result = MatchRunResult(
            demand_id=demand_id,
            run_id=run_id,
            total_matched=len(matches),
            matches=matches,
            duration=timedelta(seconds=elapsed),
            matched_at=datetime.now(timezone.utc),
            discovery_degraded=discovery_degraded,
            dropped_supplier_ids=sorted(dropped or []),
            deadline_exceeded=deadline_exceeded,
        )

        logger.info(
            f"Matching run finished for demand {demand_id}: {result.total_matched} matched, "
            f"{len(result.dropped_supplier_ids)} dropped in {elapsed * 1000:.1f}ms",
            extra={"demand_id": demand_id},
        )
        return result
