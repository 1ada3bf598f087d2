"""AnalyticsStore snapshot persistence (one row per user/period)."""
from __future__ import annotations

import json
from typing import Optional

from core.models import (
    AnalyticsSnapshot, DailyPayment, DateRange, KPIs, PaymentFlow, PaymentMethodStat,
    SalesDay, TopCustomer, TopProduct, utcnow,
)

SNAPSHOT_COLUMNS = (
    "user_id, period, start_date, end_date, total_sales, total_purchases, "
    "total_expenses, net_profit, payment_methods, sales_by_date, top_products, "
    "top_customers, payment_flow, daily_payments, kpis, last_updated"
)

# Columns replaced on conflict (created_at keeps the first write)
_UPDATABLE = (
    "start_date", "end_date", "total_sales", "total_purchases", "total_expenses",
    "net_profit", "payment_methods", "sales_by_date", "top_products",
    "top_customers", "payment_flow", "daily_payments", "kpis", "last_updated",
)


def _row_to_snapshot(row: tuple) -> AnalyticsSnapshot:
    (user_id, period, start_date, end_date, total_sales, total_purchases,
     total_expenses, net_profit, payment_methods, sales_by_date, top_products,
     top_customers, payment_flow, daily_payments, kpis, last_updated) = row

    return AnalyticsSnapshot(
        user_id=user_id,
        period=period,
        date_range=DateRange(period=period, start_date=start_date, end_date=end_date),
        total_sales=float(total_sales),
        total_purchases=float(total_purchases),
        total_expenses=float(total_expenses),
        net_profit=float(net_profit),
        payment_methods=[PaymentMethodStat.from_dict(m) for m in json.loads(payment_methods)],
        sales_by_date=[SalesDay.from_dict(d) for d in json.loads(sales_by_date)],
        top_products=[TopProduct.from_dict(p) for p in json.loads(top_products)],
        top_customers=[TopCustomer.from_dict(c) for c in json.loads(top_customers)],
        payment_flow=PaymentFlow.from_dict(json.loads(payment_flow)),
        daily_payments=[DailyPayment.from_dict(d) for d in json.loads(daily_payments)],
        kpis=KPIs.from_dict(json.loads(kpis)),
        last_updated=last_updated,
    )


class SnapshotsMixin:

    async def get_snapshot(self, user_id: str, period: str) -> Optional[AnalyticsSnapshot]:
        row = await self._fetch_one(f"""
            SELECT {SNAPSHOT_COLUMNS}
            FROM analytics_snapshots
            WHERE user_id = ? AND period = ?
        """, [user_id, period])
        return _row_to_snapshot(row) if row else None

    async def save_snapshot(self, snapshot: AnalyticsSnapshot) -> None:
        """Create or replace the (user, period) row in a single statement."""
        content = snapshot.content_dict()
        updates = ",\n                ".join(f"{col} = EXCLUDED.{col}" for col in _UPDATABLE)

        await self._execute(f"""
            INSERT INTO analytics_snapshots ({SNAPSHOT_COLUMNS}, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT (user_id, period) DO UPDATE SET
                {updates}
        """, [
            snapshot.user_id,
            snapshot.period,
            snapshot.date_range.start_date,
            snapshot.date_range.end_date,
            snapshot.total_sales,
            snapshot.total_purchases,
            snapshot.total_expenses,
            snapshot.net_profit,
            json.dumps(content["paymentMethods"]),
            json.dumps(content["salesByDate"]),
            json.dumps(content["topProducts"]),
            json.dumps(content["topCustomers"]),
            json.dumps(content["paymentFlow"]),
            json.dumps(content["dailyPayments"]),
            json.dumps(content["kpis"]),
            snapshot.last_updated,
            utcnow(),
        ])

    async def delete_snapshots(self, user_id: str) -> int:
        """Delete every snapshot of a user; returns the number of rows removed."""

        def _delete(conn) -> int:
            count = conn.execute(
                "SELECT COUNT(*) FROM analytics_snapshots WHERE user_id = ?", [user_id]
            ).fetchone()[0]
            conn.execute("DELETE FROM analytics_snapshots WHERE user_id = ?", [user_id])
            return count

        return await self._transaction(_delete, "delete_snapshots")

    async def count_snapshots(self, user_id: str) -> int:
        row = await self._fetch_one(
            "SELECT COUNT(*) FROM analytics_snapshots WHERE user_id = ?", [user_id]
        )
        return int(row[0])
