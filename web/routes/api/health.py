"""Health check and metrics endpoints."""
import time

from fastapi import APIRouter, Depends, Request

from core.config import VERSION
from core.events import EventBus
from core.observability import get_correlation_id, metrics, Timer
from core.store import AnalyticsStore
from core.stream_manager import StreamManager
from web.schemas import HealthResponse, MetricsResponse
from ._deps import limiter, get_bus, get_store, get_streams, get_logger, START_TIME

router = APIRouter()
logger = get_logger(__name__)


@router.get("/health", response_model=HealthResponse)
@limiter.limit("60/minute")
async def health_check(
    request: Request,
    store: AnalyticsStore = Depends(get_store),
    bus: EventBus = Depends(get_bus),
    streams: StreamManager = Depends(get_streams),
):
    """Health check endpoint for Docker/load balancer monitoring."""
    uptime_seconds = int(time.time() - START_TIME)

    db_latency_ms = None
    try:
        with Timer("health_check_db") as timer:
            store_stats = await store.get_stats()
        store_status = "connected"
        db_latency_ms = round(timer.elapsed_ms, 2)
    except Exception as e:
        logger.warning(f"Health check store query failed: {e}")
        store_stats = None
        store_status = f"error: {e}"

    bridge = getattr(request.app.state, "bridge", None)

    return {
        "status": "healthy" if store_stats is not None else "degraded",
        "version": VERSION,
        "uptime_seconds": uptime_seconds,
        "correlation_id": get_correlation_id(),
        "store": store_stats,
        "store_status": store_status,
        "db_latency_ms": db_latency_ms,
        "event_handlers": bus.get_handlers(),
        "streams": streams.get_stats(),
        "broker": bridge.stats.to_dict() if bridge else None,
    }


@router.get("/metrics", response_model=MetricsResponse)
@limiter.limit("30/minute")
async def get_metrics(request: Request):
    """Request counts, error counts (including extractor failures) and timings."""
    return {
        "uptime_seconds": int(time.time() - START_TIME),
        "correlation_id": get_correlation_id(),
        **metrics.get_stats(),
    }
