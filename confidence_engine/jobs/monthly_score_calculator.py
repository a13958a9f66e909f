"""
monthly_score_calculator.py
───────────────────────────
Monthly batch job that scores every property and appends one confidence
score snapshot per property to property_confidence_scores.

  property provider (find_all) → queue → N workers
      each worker: score → stamp with now → save → publish event

Each property is its own failure boundary: an exception or a timeout is
logged and counted, and the run carries on with the next property. Only a
failure to enumerate the properties aborts the run.

Schedule: 03:00 UTC on the 1st of each month (cron / Kubernetes CronJob)

Usage:
  python -m confidence_engine.jobs.monthly_score_calculator
  OR via the admin endpoint: POST /v1/admin/run-monthly-scores
"""
from __future__ import annotations

import asyncio
import time
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

import structlog
from prometheus_client import Counter, Histogram

from confidence_engine.core.config import Settings, get_settings
from confidence_engine.models.confidence_score import ConfidenceScore
from confidence_engine.models.database import get_engine, get_sessionmaker
from confidence_engine.repositories.interfaces import ConfidenceScoreRepository, PropertyRepository
from confidence_engine.repositories.memory import load_portfolio
from confidence_engine.repositories.score_repository import SqlAlchemyConfidenceScoreRepository
from confidence_engine.scoring.engine import ConfidenceScoreService, build_snapshot
from confidence_engine.scoring.flood_risk import build_flood_risk_lookup
from confidence_engine.services.event_publisher import close_producer, publish_score_event

logger = structlog.get_logger(__name__)

SCORE_CALCULATIONS = Counter(
    "confidence_score_calculations_total",
    "Per-property outcomes of the monthly confidence score run",
    ["outcome"],
)
SCORE_CALCULATION_SECONDS = Histogram(
    "confidence_score_calculation_seconds",
    "Wall time to score and persist one property",
)

Publisher = Callable[[ConfidenceScore], Awaitable[None]]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class PropertyFailure:
    property_id: str
    error_type: str
    message: str


@dataclass
class PropertyOutcome:
    property_id: str
    snapshot: Optional[ConfidenceScore] = None
    failure: Optional[PropertyFailure] = None

    @property
    def ok(self) -> bool:
        return self.failure is None


@dataclass
class BatchRunSummary:
    run_id: str
    started_at: datetime
    finished_at: datetime
    properties_total: int
    succeeded: int
    failed: int
    partial: int
    elapsed_seconds: float
    failures: list[PropertyFailure] = field(default_factory=list)

    @property
    def status(self) -> str:
        if self.failed == 0:
            return "success"
        if self.succeeded == 0:
            return "failed"
        return "partial"

    def to_dict(self) -> dict:
        result = asdict(self)
        result["started_at"] = self.started_at.isoformat()
        result["finished_at"] = self.finished_at.isoformat()
        result["status"] = self.status
        return result


class MonthlyScoreCalculator:
    """
    Supervisor for one scoring run.

    With max_workers=1 properties are processed strictly one after another
    in enumeration order.
    """

    def __init__(
        self,
        property_repository: PropertyRepository,
        score_service: ConfidenceScoreService,
        score_repository: ConfidenceScoreRepository,
        *,
        max_workers: int = 1,
        property_timeout_seconds: float = 30.0,
        clock: Callable[[], datetime] = _utcnow,
        publisher: Optional[Publisher] = None,
    ):
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.property_repository = property_repository
        self.score_service = score_service
        self.score_repository = score_repository
        self.max_workers = max_workers
        self.property_timeout_seconds = property_timeout_seconds
        self.clock = clock
        self.publisher = publisher

    async def run(self) -> BatchRunSummary:
        run_id = str(uuid.uuid4())
        started_at = _utcnow()
        log = logger.bind(run_id=run_id)
        log.info("monthly_score_run_started", max_workers=self.max_workers)

        try:
            properties = await self.property_repository.find_all()
        except Exception as e:
            log.error("monthly_score_run_failed", stage="enumerate", error=str(e))
            raise

        log.info("properties_enumerated", count=len(properties))

        queue: asyncio.Queue = asyncio.Queue()
        for index, prop in enumerate(properties):
            queue.put_nowait((index, prop.id))
        workers = min(self.max_workers, len(properties)) or 1
        for _ in range(workers):
            queue.put_nowait(None)

        outcomes: dict[int, PropertyOutcome] = {}
        await asyncio.gather(*(self._worker(queue, outcomes, log) for _ in range(workers)))

        ordered = [outcomes[i] for i in sorted(outcomes)]
        succeeded = [o for o in ordered if o.ok]
        failures = [o.failure for o in ordered if not o.ok]
        finished_at = _utcnow()

        summary = BatchRunSummary(
            run_id=run_id,
            started_at=started_at,
            finished_at=finished_at,
            properties_total=len(properties),
            succeeded=len(succeeded),
            failed=len(failures),
            partial=sum(1 for o in succeeded if o.snapshot.is_partial),
            elapsed_seconds=round((finished_at - started_at).total_seconds(), 2),
            failures=failures,
        )
        log.info(
            "monthly_score_run_complete",
            status=summary.status,
            properties_total=summary.properties_total,
            succeeded=summary.succeeded,
            failed=summary.failed,
            partial=summary.partial,
            elapsed_seconds=summary.elapsed_seconds,
        )
        return summary

    async def _worker(self, queue: asyncio.Queue, outcomes: dict[int, PropertyOutcome], log) -> None:
        while True:
            item = await queue.get()
            if item is None:
                return
            index, property_id = item
            outcomes[index] = await self._process(property_id, log)

    async def _process(self, property_id: str, log) -> PropertyOutcome:
        log.info("property_score_started", property_id=property_id)
        t0 = time.perf_counter()
        try:
            # Only the calculation is bounded; a save that has started is
            # never cancelled, so the outcome matches what the store holds.
            calculation = await asyncio.wait_for(
                self.score_service.calculate_for_property(property_id),
                timeout=self.property_timeout_seconds,
            )
            snapshot = build_snapshot(property_id, calculation, self.clock())
            saved = await self.score_repository.save(snapshot)
        except asyncio.TimeoutError:
            SCORE_CALCULATIONS.labels(outcome="timeout").inc()
            log.error("property_score_timeout", property_id=property_id, timeout_seconds=self.property_timeout_seconds)
            return PropertyOutcome(
                property_id,
                failure=PropertyFailure(property_id, "TimeoutError", f"exceeded {self.property_timeout_seconds}s"),
            )
        except Exception as e:
            SCORE_CALCULATIONS.labels(outcome="failed").inc()
            log.error("property_score_failed", property_id=property_id, error_type=type(e).__name__, error=str(e))
            return PropertyOutcome(property_id, failure=PropertyFailure(property_id, type(e).__name__, str(e)))
        finally:
            SCORE_CALCULATION_SECONDS.observe(time.perf_counter() - t0)

        SCORE_CALCULATIONS.labels(outcome="partial" if saved.is_partial else "success").inc()
        log.info(
            "property_score_saved",
            property_id=property_id,
            score_id=saved.score_id,
            insurance_score=saved.insurance_score,
            buyer_score=saved.buyer_score,
            is_partial=saved.is_partial,
        )

        if self.publisher is not None:
            try:
                await self.publisher(saved)
            except Exception as e:
                log.warning("score_event_publish_failed", property_id=property_id, error=str(e))

        return PropertyOutcome(property_id, snapshot=saved)


# ─── Wiring ───────────────────────────────────────────────────────

def build_score_service(settings: Settings) -> ConfidenceScoreService:
    property_repo, asset_repo, task_repo = load_portfolio(settings.portfolio_path)
    return ConfidenceScoreService(
        property_repo,
        asset_repo,
        task_repo,
        build_flood_risk_lookup(settings),
        flood_risk_timeout_seconds=settings.flood_risk_timeout_seconds,
        flood_risk_fallback_score=settings.flood_risk_fallback_score,
    )


async def run_monthly_score_calculation(settings: Optional[Settings] = None) -> dict:
    """
    Full run against the configured data providers and the SQL score store.
    Returns the run summary as a dict.
    """
    settings = settings or get_settings()
    service = build_score_service(settings)
    store = SqlAlchemyConfidenceScoreRepository(session_factory=get_sessionmaker())

    calculator = MonthlyScoreCalculator(
        service.property_repository,
        service,
        store,
        max_workers=settings.batch_max_workers,
        property_timeout_seconds=settings.batch_property_timeout_seconds,
        publisher=publish_score_event,
    )
    summary = await calculator.run()
    return summary.to_dict()


async def main() -> dict:
    """CLI entry point: one run, then release the DB pool and the Kafka producer."""
    try:
        return await run_monthly_score_calculation()
    finally:
        await close_producer()
        await get_engine().dispose()


if __name__ == "__main__":
    import sys

    try:
        result = asyncio.run(main())
        print(f"✓ Confidence scores: {result['succeeded']}/{result['properties_total']} properties scored, "
              f"{result['failed']} failed, {result['partial']} partial ({result['elapsed_seconds']}s)")
    except Exception as e:
        print(f"✗ Monthly score run failed: {e}", file=sys.stderr)
        sys.exit(1)
