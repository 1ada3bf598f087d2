"""
Integration tests for core/store.py and its repository mixins.

Runs the metric extractors, snapshot persistence and business summary
queries against an in-memory DuckDB.
"""
import pytest
from datetime import timedelta

from core.models import (
    AnalyticsSnapshot, DateRange, Invoice, InvoiceItem, PaymentMethodStat, TopProduct, utcnow,
)
from core.store import AnalyticsStore


def window(now, days=30):
    return now - timedelta(days=days), now


class TestStoreLifecycle:
    """Tests for connection handling and stats."""

    @pytest.mark.asyncio
    async def test_connect_and_close(self):
        store = AnalyticsStore(":memory:")
        assert not store.is_connected
        await store.connect()
        assert store.is_connected
        assert store.get_connection_info()["status"] == "active"
        await store.close()
        assert not store.is_connected

    @pytest.mark.asyncio
    async def test_stats_counts_rows(self, store, seed_tenant):
        await seed_tenant()
        stats = await store.get_stats()
        assert stats["invoices"] == 4
        assert stats["invoice_items"] == 5
        assert stats["payments"] == 3
        assert stats["analytics_snapshots"] == 0
        assert stats["total_queries"] > 0

    @pytest.mark.asyncio
    async def test_add_invoice_sets_id(self, store):
        invoice = Invoice("user-1", "Acme", [InvoiceItem("Widget", 1, 10)])
        invoice_id = await store.add_invoice(invoice)
        assert invoice.id == invoice_id
        assert invoice_id >= 1


class TestMetricExtractors:
    """Tests for MetricsMixin aggregations over a seeded tenant."""

    @pytest.mark.asyncio
    async def test_financial_overview(self, store, seed_tenant, now):
        expected = await seed_tenant(now=now)
        start, end = window(now)
        overview = await store.get_financial_overview("user-1", start, end)
        assert overview == {
            "total_sales": pytest.approx(expected["total_sales_30d"]),
            "total_purchases": pytest.approx(expected["total_purchases_30d"]),
            "total_expenses": pytest.approx(expected["total_expenses_30d"]),
        }

    @pytest.mark.asyncio
    async def test_payment_methods_sorted_by_total(self, store, seed_tenant, now):
        await seed_tenant(now=now)
        methods = await store.get_payment_methods("user-1", *window(now))
        assert [(m.method, m.total, m.count) for m in methods] == [
            ("UPI", 500.0, 1),
            ("Cash", 300.0, 1),
            ("Bank Transfer", 200.0, 1),
        ]
        # Percentages are filled in by the orchestrator
        assert all(m.percentage == 0 for m in methods)

    @pytest.mark.asyncio
    async def test_sales_by_date_ascending(self, store, seed_tenant, now):
        expected = await seed_tenant(now=now)
        days = await store.get_sales_by_date("user-1", *window(now))
        assert [(d.date, d.sales, d.orders) for d in days] == [
            (expected["day1"], 1180.0, 1),
            (expected["day2"], 650.0, 2),
        ]

    @pytest.mark.asyncio
    async def test_top_products(self, store, seed_tenant, now):
        await seed_tenant(now=now)
        products = await store.get_top_products("user-1", *window(now), limit=10)
        assert products == [
            TopProduct("Widget", 3.0, 750.0, 2, 1),
            TopProduct("Gadget", 1.0, 500.0, 1, 2),
            TopProduct("Gizmo", 4.0, 400.0, 1, 3),
        ]

    @pytest.mark.asyncio
    async def test_top_products_limit(self, store, seed_tenant, now):
        await seed_tenant(now=now)
        products = await store.get_top_products("user-1", *window(now), limit=1)
        assert [p.product_name for p in products] == ["Widget"]

    @pytest.mark.asyncio
    async def test_top_products_tie_broken_by_name(self, store, now):
        for name in ("Zeta", "Alpha"):
            await store.add_invoice(Invoice("user-1", "Acme", [InvoiceItem(name, 1, 100)], created_at=now - timedelta(hours=1)))
        products = await store.get_top_products("user-1", *window(now))
        assert [p.product_name for p in products] == ["Alpha", "Zeta"]

    @pytest.mark.asyncio
    async def test_top_customers(self, store, seed_tenant, now):
        await seed_tenant(now=now)
        customers = await store.get_top_customers("user-1", *window(now), limit=10)
        assert [(c.customer_name, c.total_amount, c.invoice_count, c.rank) for c in customers] == [
            ("Acme", 1430.0, 2, 1),
            ("Globex", 400.0, 1, 2),
        ]
        assert customers[0].avg_order_value == pytest.approx(715.0)

    @pytest.mark.asyncio
    async def test_payment_flow(self, store, seed_tenant, now):
        await seed_tenant(now=now)
        flow = await store.get_payment_flow("user-1", *window(now))
        assert flow.to_dict() == {
            "moneyIn": {"total": 800.0, "count": 2},
            "moneyOut": {"total": 200.0, "count": 1},
        }

    @pytest.mark.asyncio
    async def test_daily_payments(self, store, seed_tenant, now):
        expected = await seed_tenant(now=now)
        days = await store.get_daily_payments("user-1", *window(now))
        assert [d.to_dict() for d in days] == [
            {"date": expected["day1"], "received": 500.0, "paid": 0.0},
            {"date": expected["day2"], "received": 300.0, "paid": 200.0},
        ]

    @pytest.mark.asyncio
    async def test_kpis(self, store, seed_tenant, now):
        await seed_tenant(now=now)
        kpis = await store.get_kpis("user-1", *window(now))
        assert kpis.total_customers == 2
        assert kpis.total_products == 3
        assert kpis.total_invoices == 3
        assert kpis.avg_order_value == pytest.approx(610.0)
        assert kpis.conversion_rate == 0

    @pytest.mark.asyncio
    async def test_empty_tenant_yields_identity_values(self, store, now):
        start, end = window(now)
        assert await store.get_financial_overview("nobody", start, end) == {
            "total_sales": 0.0, "total_purchases": 0.0, "total_expenses": 0.0,
        }
        assert await store.get_payment_methods("nobody", start, end) == []
        assert await store.get_sales_by_date("nobody", start, end) == []
        assert await store.get_top_products("nobody", start, end) == []
        assert await store.get_top_customers("nobody", start, end) == []
        assert (await store.get_payment_flow("nobody", start, end)).money_in.count == 0
        assert await store.get_daily_payments("nobody", start, end) == []
        kpis = await store.get_kpis("nobody", start, end)
        assert kpis.total_invoices == 0
        assert kpis.avg_order_value == 0

    @pytest.mark.asyncio
    async def test_tenant_isolation(self, store, seed_tenant, now):
        await seed_tenant("user-1", now=now)
        await seed_tenant("user-2", now=now)
        await store.add_invoice(Invoice("user-2", "Initech", [InvoiceItem("Stapler", 1, 50)], created_at=now - timedelta(hours=1)))

        one = await store.get_financial_overview("user-1", *window(now))
        two = await store.get_financial_overview("user-2", *window(now))
        assert one["total_sales"] == pytest.approx(1830.0)
        assert two["total_sales"] == pytest.approx(1880.0)


class TestSnapshots:
    """Tests for SnapshotsMixin persistence."""

    def _snapshot(self, user_id="user-1", period="30days", sales=100.0):
        snapshot = AnalyticsSnapshot.empty(user_id, period)
        now = utcnow()
        snapshot.date_range = DateRange(period, now - timedelta(days=30), now)
        snapshot.total_sales = sales
        snapshot.payment_methods = [PaymentMethodStat("UPI", sales, 1, 100.0)]
        snapshot.top_products = [TopProduct("Widget", 1.0, sales, 1, 1)]
        snapshot.calculate_net_profit()
        return snapshot

    @pytest.mark.asyncio
    async def test_missing_snapshot(self, store):
        assert await store.get_snapshot("user-1", "30days") is None

    @pytest.mark.asyncio
    async def test_save_and_load(self, store):
        snapshot = self._snapshot()
        await store.save_snapshot(snapshot)

        loaded = await store.get_snapshot("user-1", "30days")
        assert loaded.content_dict() == snapshot.content_dict()
        assert loaded.date_range.start_date == snapshot.date_range.start_date
        assert loaded.last_updated == snapshot.last_updated

    @pytest.mark.asyncio
    async def test_upsert_keeps_one_row(self, store):
        await store.save_snapshot(self._snapshot(sales=100.0))
        await store.save_snapshot(self._snapshot(sales=250.0))

        assert await store.count_snapshots("user-1") == 1
        loaded = await store.get_snapshot("user-1", "30days")
        assert loaded.total_sales == 250.0

    @pytest.mark.asyncio
    async def test_delete_only_touches_user(self, store):
        for period in ("7days", "30days", "90days"):
            await store.save_snapshot(self._snapshot(period=period))
        await store.save_snapshot(self._snapshot(user_id="user-2"))

        assert await store.delete_snapshots("user-1") == 3
        assert await store.count_snapshots("user-1") == 0
        assert await store.count_snapshots("user-2") == 1

    @pytest.mark.asyncio
    async def test_delete_nothing(self, store):
        assert await store.delete_snapshots("user-1") == 0


class TestBusinessData:
    """Tests for BusinessDataMixin all-time aggregates."""

    @pytest.mark.asyncio
    async def test_summary_is_all_time(self, store, seed_tenant):
        await seed_tenant()
        summary = await store.get_business_summary("user-1")
        assert summary["totalSales"] == pytest.approx(2030.0)
        assert summary["totalPurchases"] == pytest.approx(400.0)
        assert summary["totalExpenses"] == pytest.approx(100.0)
        assert summary["totalRevenue"] == pytest.approx(1530.0)
        assert summary["totalCustomers"] == 2
        assert summary["totalProducts"] == 3
        assert summary["totalInvoices"] == 4
        assert summary["totalOrders"] == 1

    @pytest.mark.asyncio
    async def test_recent_invoices_newest_first(self, store, seed_tenant):
        await seed_tenant()
        recent = await store.get_recent_invoices("user-1", limit=2)
        assert len(recent) == 2
        assert recent[0]["createdAt"] >= recent[1]["createdAt"]
        assert all(inv["customerName"] != "Old Co" for inv in recent)

    @pytest.mark.asyncio
    async def test_customer_totals(self, store, seed_tenant):
        await seed_tenant()
        totals = await store.get_customer_totals("user-1", limit=10)
        assert totals[0] == ["Acme", pytest.approx(1430.0)]
        assert [name for name, _ in totals] == ["Acme", "Globex", "Old Co"]

    @pytest.mark.asyncio
    async def test_stock_alerts(self, store, seed_tenant):
        await seed_tenant()
        assert await store.get_stock_alerts("user-1") == {"lowStockItems": 2, "outOfStockItems": 1}

    @pytest.mark.asyncio
    async def test_company(self, store):
        assert await store.get_company("user-1") is None
        await store.upsert_company("user-1", business_name="Acme Traders", email="hi@acme.test")
        await store.upsert_company("user-1", business_name="Acme Traders Ltd", email="hi@acme.test")
        company = await store.get_company("user-1")
        assert company["businessName"] == "Acme Traders Ltd"
        assert company["companyName"] is None
