"""
FastAPI web application for the Invoice Swift analytics backend.
"""
from fastapi import FastAPI, Request
from fastapi.responses import ORJSONResponse, JSONResponse
from starlette.middleware.gzip import GZipMiddleware

from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded

from web.routes import api
from web.routes.api._deps import limiter
from web.middleware import RequestLoggingMiddleware, RequestTimeoutMiddleware
from core.analytics_service import AnalyticsService
from core.broker import RedisEventBridge
from core.config import config, validate_config, ConfigurationError, VERSION
from core.events import EventBus
from core.observability import setup_logging, get_logger
from core.store import get_store, close_store
from core.stream_manager import StreamManager

# JSON lines in production (LOG_FORMAT=json), human-readable otherwise
setup_logging()
logger = get_logger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Invoice Swift Analytics",
    description="Per-tenant business analytics for Invoice Swift",
    version=VERSION,
    default_response_class=ORJSONResponse
)

# Add rate limiter to app state
app.state.limiter = limiter

# Custom rate limit exceeded handler
@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    logger.warning(f"Rate limit exceeded for {get_remote_address(request)}")
    return JSONResponse(
        status_code=429,
        content={
            "error": "Rate limit exceeded",
            "detail": "Too many requests. Please try again later.",
            "retry_after": exc.detail
        }
    )

# Deadlines sit inside the logging layer so a 504 is logged and carries the correlation id
app.add_middleware(RequestTimeoutMiddleware)

# Correlation IDs, tenant-scoped access log, request timing
app.add_middleware(RequestLoggingMiddleware)

# Add Gzip compression (min 500 bytes to compress)
app.add_middleware(GZipMiddleware, minimum_size=500)

# Include routers
app.include_router(api.router, prefix="/api")


def wire_services(store, bus: EventBus = None) -> AnalyticsService:
    """Attach store, bus, analytics service and stream manager to app.state."""
    bus = bus or EventBus()
    service = AnalyticsService(store, bus)
    app.state.store = store
    app.state.bus = bus
    app.state.analytics = service
    app.state.streams = StreamManager(service, bus)
    app.state.bridge = None
    return service


@app.on_event("startup")
async def startup_event():
    logger.info("Invoice Swift analytics starting...")

    # Validate configuration early - fail fast with clear errors
    try:
        validate_config()
        logger.info("Configuration validated")
    except ConfigurationError as e:
        logger.critical(f"Configuration error: {e}")
        raise SystemExit(1)

    try:
        store = await get_store()
        stats = await store.get_stats()
        logger.info(
            f"DuckDB ready: {stats['invoices']} invoices, "
            f"{stats['payments']} payments, "
            f"{stats['analytics_snapshots']} snapshots"
        )
    except Exception as e:
        logger.error(f"DuckDB initialization failed: {e}", exc_info=True)
        raise  # Fail fast - DuckDB is required

    wire_services(store)

    # Cross-worker event relay (non-fatal if Redis is unavailable)
    if config.broker.enabled:
        bridge = RedisEventBridge(app.state.bus, config.broker.url, config.broker.channel)
        try:
            await bridge.start()
            app.state.bridge = bridge
        except Exception as e:
            logger.warning(f"Event broker unavailable, streams limited to this worker: {e}")

    logger.info("Analytics API ready")


@app.on_event("shutdown")
async def shutdown_event():
    # Let scheduled recomputes finish before the store goes away
    service = getattr(app.state, "analytics", None)
    if service is not None:
        try:
            await service.drain()
        except Exception as e:
            logger.warning(f"Error draining analytics updates: {e}")

    bridge = getattr(app.state, "bridge", None)
    if bridge is not None:
        try:
            await bridge.stop()
        except Exception as e:
            logger.warning(f"Error stopping event broker: {e}")

    try:
        await close_store()
        logger.info("DuckDB closed")
    except Exception as e:
        logger.warning(f"Error closing DuckDB: {e}")
    logger.info("Invoice Swift analytics stopped")
