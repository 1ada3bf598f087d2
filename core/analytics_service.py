"""
Analytics recompute orchestrator.

Turns the raw source collections of one tenant into a persisted
AnalyticsSnapshot per period and announces every refresh on the event bus.

Usage:
    service = AnalyticsService(store, bus)
    snapshot = await service.update_analytics("user-1", "30days")

    # After a source-data write (never blocks the caller)
    service.schedule_update("user-1")
"""
import asyncio
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Tuple

from core.config import AnalyticsConfig, ReadPolicy, config
from core.events import EventBus, emit_bulk_recompute_completed, emit_recompute_completed
from core.exceptions import ExtractorError, SnapshotPersistenceError
from core.models import AnalyticsSnapshot, DateRange, Period, utcnow
from core.observability import get_logger, metrics, tenant_context, timed

logger = get_logger(__name__)

# Marker for an extractor whose fields stay at their identity value
_FAILED = object()


def resolve_window(period: str, now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """Concrete [start, end] window for a period value; unknown values get 30 days."""
    try:
        return Period(period).resolve(now)
    except ValueError:
        return Period.LAST_30_DAYS.resolve(now)


def _apply_financial(snapshot: AnalyticsSnapshot, totals: Dict[str, float]) -> None:
    snapshot.total_sales = totals["total_sales"]
    snapshot.total_purchases = totals["total_purchases"]
    snapshot.total_expenses = totals["total_expenses"]


def _setter(attr: str) -> Callable[[AnalyticsSnapshot, Any], None]:
    def apply(snapshot: AnalyticsSnapshot, value: Any) -> None:
        setattr(snapshot, attr, value)
    return apply


class AnalyticsService:
    """
    Recompute orchestrator and read path.

    The store and bus are injected; the service owns no global state apart
    from the set of background recomputes it has scheduled.
    """

    def __init__(self, store, bus: EventBus, settings: AnalyticsConfig = None):
        self.store = store
        self.bus = bus
        self.settings = settings or config.analytics
        self._pending: Set[asyncio.Task] = set()

    def _extractors(
        self, user_id: str, start: datetime, end: datetime
    ) -> List[Tuple[str, Awaitable, Callable[[AnalyticsSnapshot, Any], None]]]:
        """(metric name, query coroutine, merge function) for every snapshot fragment."""
        top_n = self.settings.top_n
        return [
            ("financial_overview", self.store.get_financial_overview(user_id, start, end), _apply_financial),
            ("payment_methods", self.store.get_payment_methods(user_id, start, end), _setter("payment_methods")),
            ("sales_by_date", self.store.get_sales_by_date(user_id, start, end), _setter("sales_by_date")),
            ("top_products", self.store.get_top_products(user_id, start, end, top_n), _setter("top_products")),
            ("top_customers", self.store.get_top_customers(user_id, start, end, top_n), _setter("top_customers")),
            ("payment_flow", self.store.get_payment_flow(user_id, start, end), _setter("payment_flow")),
            ("daily_payments", self.store.get_daily_payments(user_id, start, end), _setter("daily_payments")),
            ("kpis", self.store.get_kpis(user_id, start, end), _setter("kpis")),
        ]

    async def _run_extractor(self, metric: str, query: Awaitable) -> Any:
        """Await one extractor; a failure is logged and counted, never raised."""
        try:
            return await query
        except Exception as e:
            error = ExtractorError(metric, str(e))
            logger.error(str(error), extra={"metric": metric})
            metrics.record_extractor_failure(metric)
            return _FAILED

    @timed("analytics.update", warn_threshold_ms=2000)
    async def update_analytics(self, user_id: str, period: str = None) -> AnalyticsSnapshot:
        """
        Recompute and persist the snapshot for one (user, period).

        Raises:
            SnapshotPersistenceError: If the snapshot row cannot be written
        """
        period = period or self.settings.default_period

        with tenant_context(user_id, period=period):
            logger.info("Updating analytics")
            start, end = resolve_window(period)

            snapshot = await self.store.get_snapshot(user_id, period)
            if snapshot is not None:
                snapshot.reset()
            else:
                snapshot = AnalyticsSnapshot.empty(user_id, period)

            snapshot.date_range = DateRange(period=period, start_date=start, end_date=end)

            extractors = self._extractors(user_id, start, end)
            results = await asyncio.gather(
                *(self._run_extractor(metric, query) for metric, query, _ in extractors)
            )

            failed = []
            for (metric, _, apply), result in zip(extractors, results):
                if result is _FAILED:
                    failed.append(metric)
                else:
                    apply(snapshot, result)

            snapshot.calculate_net_profit()
            snapshot.calculate_payment_percentages()
            snapshot.last_updated = utcnow()

            try:
                await self.store.save_snapshot(snapshot)
            except Exception as e:
                raise SnapshotPersistenceError(user_id, period, str(e)) from e

            if failed:
                logger.warning(f"Analytics updated with {len(failed)} failed extractors", extra={"failed": failed})
            else:
                logger.info("Analytics updated")

            await emit_recompute_completed(self.bus, user_id, period, snapshot.last_updated)
            return snapshot

    async def trigger_update(self, user_id: str) -> None:
        """Recompute every tracked period concurrently. Failures are logged only."""
        periods = list(self.settings.tracked_periods)

        results = await asyncio.gather(
            *(self.update_analytics(user_id, period) for period in periods),
            return_exceptions=True,
        )

        errors = [(p, r) for p, r in zip(periods, results) if isinstance(r, Exception)]
        if errors:
            for period, error in errors:
                logger.error(
                    f"Error triggering analytics update: {error}",
                    extra={"user_id": user_id, "period": period},
                )
            return

        await emit_bulk_recompute_completed(self.bus, user_id, periods, utcnow())

    def schedule_update(self, user_id: str) -> asyncio.Task:
        """Start trigger_update() in the background and return immediately."""
        task = asyncio.create_task(self.trigger_update(user_id))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    @property
    def pending_updates(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for scheduled background recomputes (used on shutdown and in tests)."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def get_analytics(self, user_id: str, period: str = None) -> AnalyticsSnapshot:
        """
        Read path. Never raises.

        With ReadPolicy.ALWAYS_RECOMPUTE every read recomputes; with
        ReadPolicy.TTL a stored snapshot younger than ttl_seconds is served as is.
        """
        period = period or self.settings.default_period
        try:
            if self.settings.read_policy == ReadPolicy.TTL:
                stored = await self.store.get_snapshot(user_id, period)
                if stored is not None:
                    age = (utcnow() - stored.last_updated).total_seconds()
                    if age < self.settings.ttl_seconds:
                        return stored
            return await self.update_analytics(user_id, period)
        except Exception as e:
            logger.error(f"Error getting analytics: {e}", extra={"user_id": user_id, "period": period})
            return await self.create_empty_analytics(user_id, period)

    async def get_latest_analytics(self, user_id: str, period: str) -> AnalyticsSnapshot:
        """
        Stored snapshot as persisted by the last recompute; falls back to
        get_analytics() when nothing is stored yet. Never raises.

        Used by push delivery after a completion event: the snapshot was just
        written, and recomputing here would emit another completion event.
        """
        try:
            stored = await self.store.get_snapshot(user_id, period)
        except Exception as e:
            logger.error(f"Error loading stored analytics: {e}", extra={"user_id": user_id, "period": period})
            stored = None
        if stored is not None:
            return stored
        return await self.get_analytics(user_id, period)

    async def create_empty_analytics(self, user_id: str, period: str) -> AnalyticsSnapshot:
        """Persist an all-zero snapshot; if even that fails, return it unsaved."""
        snapshot = AnalyticsSnapshot.empty(user_id, period)
        start, end = resolve_window(period)
        snapshot.date_range = DateRange(period=period, start_date=start, end_date=end)
        try:
            await self.store.save_snapshot(snapshot)
        except Exception as e:
            logger.error(
                f"Error creating empty analytics: {e}",
                extra={"user_id": user_id, "period": period},
            )
        return snapshot

    async def clear_analytics(self, user_id: str) -> Dict[str, int]:
        """Delete every snapshot of the user. Errors propagate."""
        deleted = await self.store.delete_snapshots(user_id)
        logger.info(f"Cleared {deleted} analytics records", extra={"user_id": user_id})
        return {"deletedCount": deleted}
