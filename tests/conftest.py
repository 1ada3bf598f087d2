"""
Pytest configuration and shared fixtures.
"""
import pytest
import pytest_asyncio
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict

from core.analytics_service import AnalyticsService
from core.config import AnalyticsConfig, ReadPolicy
from core.events import EventBus
from core.models import (
    Customer, Expense, Invoice, InvoiceItem, Item, Payment, PaymentType, Purchase, utcnow,
)
from core.observability import metrics
from core.store import AnalyticsStore


@pytest_asyncio.fixture
async def store():
    """Fresh in-memory DuckDB store per test."""
    s = AnalyticsStore(":memory:", query_timeout=10.0)
    await s.connect()
    yield s
    await s.close()


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def analytics_settings() -> AnalyticsConfig:
    """Defaults independent of the environment."""
    return AnalyticsConfig(read_policy=ReadPolicy.ALWAYS_RECOMPUTE, ttl_seconds=300)


@pytest_asyncio.fixture
async def service(store, bus, analytics_settings):
    svc = AnalyticsService(store, bus, analytics_settings)
    yield svc
    await svc.drain()


@pytest.fixture(autouse=True)
def reset_metrics():
    """Metrics are process-global; start each test from zero."""
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture
def now() -> datetime:
    return utcnow()


@pytest.fixture
def seed_tenant(store) -> Callable[..., Awaitable[Dict[str, Any]]]:
    """
    Factory that writes a representative data set for one tenant.

    Inside the 30-day window:
        - 3 invoices (Acme x2, Globex) over 2 days
        - 3 payments (UPI Received 500, Cash Received 300, Bank Transfer Paid 200)
        - 1 purchase of 400, 1 expense of 100
    Outside every window but 1year: one invoice 200 days ago.
    """
    async def _seed(user_id: str = "user-1", now: datetime = None) -> Dict[str, Any]:
        now = now or utcnow()
        day1 = now - timedelta(days=2)
        day2 = now - timedelta(days=1)

        await store.add_invoice(Invoice(
            user_id=user_id,
            customer_name="Acme",
            items=[
                InvoiceItem("Widget", 2, 250),
                InvoiceItem("Gadget", 1, 500),
            ],
            tax_rate=18,
            created_at=day1,
        ))
        await store.add_invoice(Invoice(
            user_id=user_id,
            customer_name="Acme",
            items=[InvoiceItem("Widget", 1, 250)],
            created_at=day2,
        ))
        await store.add_invoice(Invoice(
            user_id=user_id,
            customer_name="Globex",
            items=[InvoiceItem("Gizmo", 4, 100)],
            created_at=day2,
        ))
        await store.add_invoice(Invoice(
            user_id=user_id,
            customer_name="Old Co",
            items=[InvoiceItem("Widget", 1, 200)],
            created_at=now - timedelta(days=200),
        ))

        await store.add_payment(Payment(user_id, 500, "UPI", PaymentType.RECEIVED, payment_date=day1))
        await store.add_payment(Payment(user_id, 300, "Cash", PaymentType.RECEIVED, payment_date=day2))
        await store.add_payment(Payment(user_id, 200, "Bank Transfer", PaymentType.PAID, payment_date=day2))

        await store.add_purchase(Purchase(user_id, 400, vendor_name="Supplier", created_at=day1))
        await store.add_expense(Expense(user_id, 100, category="Rent", created_at=day2))

        await store.add_customer(Customer(user_id, "Acme"))
        await store.add_customer(Customer(user_id, "Globex"))
        await store.add_item(Item(user_id, "Widget", 250), current_stock=3)
        await store.add_item(Item(user_id, "Gadget", 500), current_stock=0)
        await store.add_item(Item(user_id, "Gizmo", 100), current_stock=40)

        return {
            # 1180 + 250 + 400
            "total_sales_30d": 1830.0,
            "total_purchases_30d": 400.0,
            "total_expenses_30d": 100.0,
            "day1": day1.strftime("%Y-%m-%d"),
            "day2": day2.strftime("%Y-%m-%d"),
        }

    return _seed
