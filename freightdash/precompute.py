from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import asdict, is_dataclass
import logging
import threading

from sqlalchemy.exc import OperationalError, SQLAlchemyError

from freightdash.aggregations import (
    cost_by_range,
    fulfillment,
    locations,
    meta,
    month_on_month,
    profit_loss_by_range,
    range_wise,
    revenue_by_range,
    summary_cards,
    vehicle_cost,
)
from freightdash.cache import SnapshotCache
from freightdash.classifier import classify
from freightdash.config import Settings
from freightdash.constants import DASHBOARD_KEY, SNAPSHOT_SCHEMA_VERSION
from freightdash.db_models import utc_now
from freightdash.errors import FreightDashError, NoDataAvailable, RecomputeFailed
from freightdash.retry import RetryExhaustedError, run_with_retries
from freightdash.schemas import ClassificationResult, DashboardSnapshot, TripRecord
from freightdash.snapshot_store import SnapshotStore
from freightdash.timeseries import (
    cost_over_time,
    load_over_time,
    profit_loss_over_time,
    revenue_over_time,
    trips_over_time,
)


logger = logging.getLogger(__name__)

RecordSource = Callable[[], list[TripRecord]]

VIEW_BUILDERS: dict[str, Callable[[ClassificationResult], object]] = {
    "summary_cards": summary_cards,
    "range_wise": range_wise,
    "revenue_by_range": revenue_by_range,
    "revenue_over_time": revenue_over_time,
    "cost_by_range": cost_by_range,
    "cost_over_time": cost_over_time,
    "profit_loss_by_range": profit_loss_by_range,
    "profit_loss_over_time": profit_loss_over_time,
    "vehicle_cost": vehicle_cost,
    "load_over_time": load_over_time,
    "trips_over_time": trips_over_time,
    "fulfillment": fulfillment,
    "month_on_month": lambda classification: month_on_month(classification.all),
    "locations": locations,
    "meta": meta,
}


def to_payload(value: object) -> object:
    if is_dataclass(value) and not isinstance(value, type):
        return asdict(value)
    if isinstance(value, list):
        return [to_payload(item) for item in value]
    return value


def is_transient(exc: Exception) -> bool:
    return isinstance(exc, (OperationalError, TimeoutError))


class DashboardService:
    def __init__(
        self,
        settings: Settings,
        record_source: RecordSource,
        store: SnapshotStore,
        cache: SnapshotCache | None = None,
    ) -> None:
        self.settings = settings
        self.record_source = record_source
        self.store = store
        self.cache = cache or SnapshotCache()
        self._recompute_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._queued = False
        self._background = ThreadPoolExecutor(max_workers=1, thread_name_prefix="recompute")

    def get_snapshot(self, cache_key: str = DASHBOARD_KEY) -> DashboardSnapshot | None:
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        durable = self._load_durable(cache_key)
        if durable is not None:
            self.cache.offer(durable)
            return durable

        if cache_key != DASHBOARD_KEY:
            return None

        logger.info("no snapshot found, computing live", extra={"cache_key": cache_key})
        try:
            return self._recompute_cold(cache_key)
        except NoDataAvailable:
            logger.info("no data available", extra={"cache_key": cache_key})
            return None

    def invalidate(self, cache_key: str = DASHBOARD_KEY) -> None:
        self.cache.invalidate(cache_key)
        logger.info("in-memory snapshot invalidated", extra={"cache_key": cache_key})

    def warm_up(self) -> int:
        try:
            snapshots = self.store.load_all()
        except SQLAlchemyError:
            logger.warning("snapshot warm-up failed", exc_info=True)
            return 0

        for snapshot in snapshots:
            self.cache.offer(snapshot)
        logger.info("snapshot warm-up complete", extra={"snapshots": len(snapshots)})
        return len(snapshots)

    def notify_reload(self) -> Future | None:
        self.invalidate(DASHBOARD_KEY)
        return self.request_recompute(trigger_source="reload")

    def request_recompute(self, *, trigger_source: str) -> Future | None:
        """Queue a background recompute unless one is already waiting to start."""
        with self._state_lock:
            if self._queued:
                logger.info("recompute already queued, coalescing", extra={"trigger_source": trigger_source})
                return None
            self._queued = True
        return self._background.submit(self._run_queued, trigger_source)

    def recompute_all(self, trigger_source: str = "manual") -> DashboardSnapshot:
        with self._recompute_lock:
            return self._recompute_locked(trigger_source)

    def shutdown(self, *, wait: bool = True) -> None:
        self._background.shutdown(wait=wait)

    def _recompute_cold(self, cache_key: str) -> DashboardSnapshot:
        with self._recompute_lock:
            # Another cold reader may have filled the cache while this one waited.
            cached = self.cache.get(cache_key)
            if cached is not None:
                return cached
            return self._recompute_locked("cold-start")

    def _recompute_locked(self, trigger_source: str) -> DashboardSnapshot:
        run_id = self._start_run(trigger_source)
        try:
            records = self.record_source()
        except Exception as exc:
            self._finish_run(run_id, status="failed", error=str(exc))
            logger.exception("record source failed", extra={"trigger_source": trigger_source})
            raise RecomputeFailed(f"record source failed: {exc}") from exc

        if not records:
            self._finish_run(run_id, status="failed", error="no records")
            raise NoDataAvailable("no trip records to compute from")

        try:
            views = self._compute_views(records)
        except Exception as exc:
            self._finish_run(run_id, status="failed", record_count=len(records), error=str(exc))
            logger.exception("aggregation failed", extra={"trigger_source": trigger_source})
            raise RecomputeFailed(f"aggregation failed: {exc}") from exc

        snapshot = DashboardSnapshot(
            cache_key=DASHBOARD_KEY,
            version=SNAPSHOT_SCHEMA_VERSION,
            computed_at=utc_now(),
            record_count=len(records),
            views=views,
        )
        self._persist(snapshot)
        self.cache.offer(snapshot)
        self._finish_run(run_id, status="succeeded", record_count=len(records))

        logger.info(
            "snapshot recomputed",
            extra={"trigger_source": trigger_source, "record_count": len(records)},
        )
        return snapshot

    def _run_queued(self, trigger_source: str) -> DashboardSnapshot | None:
        with self._state_lock:
            self._queued = False
        try:
            return self.recompute_all(trigger_source=trigger_source)
        except FreightDashError:
            logger.exception("background recompute failed", extra={"trigger_source": trigger_source})
            return None

    def _compute_views(self, records: list[TripRecord]) -> dict[str, object]:
        classification = classify(records)
        # Views only read the classification, so they can run side by side.
        with ThreadPoolExecutor(max_workers=max(1, self.settings.aggregation_workers)) as pool:
            futures = {name: pool.submit(builder, classification) for name, builder in VIEW_BUILDERS.items()}
            return {name: to_payload(future.result()) for name, future in futures.items()}

    def _persist(self, snapshot: DashboardSnapshot) -> None:
        def log_attempt(attempt: int, exc: Exception) -> None:
            logger.warning(
                "durable snapshot write attempt failed",
                extra={"cache_key": snapshot.cache_key, "attempt": attempt, "error": str(exc)},
            )

        try:
            run_with_retries(
                lambda: self.store.save(snapshot),
                max_retries=self.settings.max_write_retries,
                backoff_seconds=self.settings.retry_backoff_seconds,
                deadline_seconds=self.settings.write_deadline_seconds,
                on_attempt_failure=log_attempt,
                should_retry=is_transient,
            )
        except RetryExhaustedError as exc:
            logger.warning(
                "durable snapshot write failed, serving from memory only",
                extra={"cache_key": snapshot.cache_key, "attempts": exc.attempts},
            )

    def _load_durable(self, cache_key: str) -> DashboardSnapshot | None:
        try:
            return self.store.load(cache_key)
        except SQLAlchemyError:
            logger.warning("durable snapshot read failed", extra={"cache_key": cache_key}, exc_info=True)
            return None

    def _start_run(self, trigger_source: str) -> int | None:
        try:
            return self.store.start_run(cache_key=DASHBOARD_KEY, trigger_source=trigger_source)
        except SQLAlchemyError:
            logger.warning("could not record recompute run", exc_info=True)
            return None

    def _finish_run(self, run_id: int | None, *, status: str, record_count: int = 0, error: str | None = None) -> None:
        if run_id is None:
            return
        try:
            self.store.finish_run(run_id, status=status, record_count=record_count, error=error)
        except SQLAlchemyError:
            logger.warning("could not record recompute outcome", extra={"run_id": run_id}, exc_info=True)
