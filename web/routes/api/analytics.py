"""Analytics overview, top lists, payments, dashboard, recompute and live stream endpoints."""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from sse_starlette.sse import EventSourceResponse

from core.analytics_service import AnalyticsService
from core.models import AnalyticsSnapshot
from core.stream_manager import StreamManager
from web.schemas import (
    ClearAnalyticsResponse,
    OverviewResponse,
    PaymentsResponse,
    TopCustomerResponse,
    TopProductResponse,
    UpdateAnalyticsRequest,
    UpdateAnalyticsResponse,
)
from ._deps import (
    limiter, get_service, get_streams, get_user_id, parse_period, get_logger,
    READ_LIMIT, ADMIN_LIMIT,
)

router = APIRouter(prefix="/analytics")
logger = get_logger(__name__)


def _payment_methods(snapshot: AnalyticsSnapshot) -> list:
    return [
        {"_id": m.method or "Unknown", "total": m.total, "count": m.count}
        for m in snapshot.payment_methods
    ]


def _error(status_code: int, message: str, error: Exception) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"message": message, "error": str(error)})


# ─── Read Path ─────────────────────────────────────────────────────────────────

@router.get("/overview", response_model=OverviewResponse)
@limiter.limit(READ_LIMIT)
async def get_overview(
    request: Request,
    period: Optional[str] = Query(None, description="7days, 30days, 90days, 1year or custom"),
    user_id: str = Depends(get_user_id),
    service: AnalyticsService = Depends(get_service),
):
    """Totals, payment methods and daily sales."""
    snapshot = await service.get_analytics(user_id, parse_period(period))
    return {
        "totalSales": snapshot.total_sales,
        "totalPurchases": snapshot.total_purchases,
        "totalExpenses": snapshot.total_expenses,
        "netProfit": snapshot.net_profit,
        "paymentMethods": _payment_methods(snapshot),
        "salesByDate": [
            {"_id": d.date, "total": d.sales, "count": d.orders}
            for d in snapshot.sales_by_date
        ],
        "lastUpdated": snapshot.last_updated,
    }


@router.get("/top-products", response_model=List[TopProductResponse])
@limiter.limit(READ_LIMIT)
async def get_top_products(
    request: Request,
    period: Optional[str] = Query(None),
    user_id: str = Depends(get_user_id),
    service: AnalyticsService = Depends(get_service),
):
    snapshot = await service.get_analytics(user_id, parse_period(period))
    return [
        {
            "_id": p.product_name or "Unknown Product",
            "totalQuantity": p.total_quantity,
            "totalAmount": p.total_amount,
            "count": p.order_count,
        }
        for p in snapshot.top_products
    ]


@router.get("/top-customers", response_model=List[TopCustomerResponse])
@limiter.limit(READ_LIMIT)
async def get_top_customers(
    request: Request,
    period: Optional[str] = Query(None),
    user_id: str = Depends(get_user_id),
    service: AnalyticsService = Depends(get_service),
):
    snapshot = await service.get_analytics(user_id, parse_period(period))
    return [
        {
            "_id": c.customer_name or "Unknown Customer",
            "totalAmount": c.total_amount,
            "invoiceCount": c.invoice_count,
            "avgOrderValue": c.avg_order_value,
        }
        for c in snapshot.top_customers
    ]


@router.get("/payments", response_model=PaymentsResponse)
@limiter.limit(READ_LIMIT)
async def get_payments(
    request: Request,
    period: Optional[str] = Query(None),
    user_id: str = Depends(get_user_id),
    service: AnalyticsService = Depends(get_service),
):
    """Money in/out, method breakdown and daily payments."""
    snapshot = await service.get_analytics(user_id, parse_period(period))
    flow = snapshot.payment_flow
    return {
        "paymentFlow": [
            {"_id": "Received", "total": flow.money_in.total, "count": flow.money_in.count},
            {"_id": "Paid", "total": flow.money_out.total, "count": flow.money_out.count},
        ],
        "paymentMethods": _payment_methods(snapshot),
        "dailyPayments": [
            {"_id": d.date, "received": d.received, "paid": d.paid}
            for d in snapshot.daily_payments
        ],
    }


@router.get("/dashboard")
@limiter.limit(READ_LIMIT)
async def get_dashboard(
    request: Request,
    period: Optional[str] = Query(None),
    user_id: str = Depends(get_user_id),
    service: AnalyticsService = Depends(get_service),
):
    """Full snapshot for the analytics dashboard."""
    snapshot = (await service.get_analytics(user_id, parse_period(period))).to_dict()
    return {
        "overview": {
            "totalSales": snapshot["totalSales"],
            "totalPurchases": snapshot["totalPurchases"],
            "totalExpenses": snapshot["totalExpenses"],
            "netProfit": snapshot["netProfit"],
        },
        "kpis": snapshot["kpis"],
        "topProducts": snapshot["topProducts"],
        "topCustomers": snapshot["topCustomers"],
        "paymentMethods": snapshot["paymentMethods"],
        "salesTrends": snapshot["salesByDate"],
        "paymentFlow": snapshot["paymentFlow"],
        "dailyPayments": snapshot["dailyPayments"],
        "dateRange": snapshot["dateRange"],
        "lastUpdated": snapshot["lastUpdated"],
    }


# ─── Admin ─────────────────────────────────────────────────────────────────────

@router.post("/update", response_model=UpdateAnalyticsResponse)
@limiter.limit(ADMIN_LIMIT)
async def update_analytics(
    request: Request,
    body: Optional[UpdateAnalyticsRequest] = None,
    user_id: str = Depends(get_user_id),
    service: AnalyticsService = Depends(get_service),
):
    """Recompute one period now. Persistence failures surface as 500."""
    period = parse_period(body.period if body else None)
    try:
        snapshot = await service.update_analytics(user_id, period)
    except Exception as e:
        logger.error(f"Analytics update failed: {e}", extra={"user_id": user_id, "period": period})
        return _error(500, "Error updating analytics", e)

    return {"message": "Analytics updated successfully", "lastUpdated": snapshot.last_updated}


@router.delete("/clear", response_model=ClearAnalyticsResponse)
@limiter.limit(ADMIN_LIMIT)
async def clear_analytics(
    request: Request,
    user_id: str = Depends(get_user_id),
    service: AnalyticsService = Depends(get_service),
):
    """Delete every stored snapshot of the caller."""
    try:
        result = await service.clear_analytics(user_id)
    except Exception as e:
        logger.error(f"Analytics clear failed: {e}", extra={"user_id": user_id})
        return _error(500, "Error clearing analytics", e)

    return {
        "message": "Analytics cache cleared successfully. Analytics will be recalculated on next request.",
        "deletedCount": result["deletedCount"],
    }


# ─── Live Stream ───────────────────────────────────────────────────────────────

@router.get("/stream")
async def stream_analytics(
    request: Request,
    period: Optional[str] = Query(None),
    user_id: str = Depends(get_user_id),
    streams: StreamManager = Depends(get_streams),
):
    """
    Server-sent events for a live dashboard.

    Sends `snapshot` immediately, then `update` after every recompute of
    the requested period. `error` events report failed refreshes.
    """
    period = parse_period(period)

    # Registration happens only once the body is iterated, so a response
    # that is never sent leaves nothing subscribed
    async def event_source():
        stream = await streams.open(user_id, period)
        try:
            async for frame in streams.frames(stream):
                yield frame
        finally:
            await streams.close(stream)

    return EventSourceResponse(event_source(), ping=streams.keepalive_seconds)


@router.get("/stream/stats")
@limiter.limit(READ_LIMIT)
async def stream_stats(request: Request, streams: StreamManager = Depends(get_streams)):
    """Open stream counts for monitoring."""
    return streams.get_stats()
