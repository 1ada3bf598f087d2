"""AnalyticsStore metric extractor queries.

Every extractor takes ``(user_id, start, end)`` and returns its snapshot
fragment. Zero matching rows yield the fragment's identity value.
"""
from __future__ import annotations

from datetime import datetime
from typing import Dict, List

from core.models import (
    DailyPayment, FlowTotals, KPIs, PaymentFlow, PaymentMethodStat, PaymentType,
    SalesDay, TopCustomer, TopProduct,
)

DAY_FORMAT = "%Y-%m-%d"


class MetricsMixin:

    async def get_financial_overview(
        self, user_id: str, start: datetime, end: datetime
    ) -> Dict[str, float]:
        """Sales, purchase and expense totals inside the window."""
        row = await self._fetch_one("""
            SELECT
                (SELECT COALESCE(SUM(total_amount), 0) FROM invoices
                 WHERE user_id = ? AND created_at BETWEEN ? AND ?),
                (SELECT COALESCE(SUM(total_amount), 0) FROM purchases
                 WHERE user_id = ? AND created_at BETWEEN ? AND ?),
                (SELECT COALESCE(SUM(amount), 0) FROM expenses
                 WHERE user_id = ? AND created_at BETWEEN ? AND ?)
        """, [user_id, start, end] * 3)

        return {
            "total_sales": float(row[0]),
            "total_purchases": float(row[1]),
            "total_expenses": float(row[2]),
        }

    async def get_payment_methods(
        self, user_id: str, start: datetime, end: datetime
    ) -> List[PaymentMethodStat]:
        """Payments grouped by method, largest total first. Percentages are derived later."""
        rows = await self._fetch_all("""
            SELECT
                COALESCE(payment_method, 'Unknown') AS method,
                SUM(amount) AS total,
                COUNT(*) AS count
            FROM payments
            WHERE user_id = ? AND payment_date BETWEEN ? AND ?
            GROUP BY method
            ORDER BY total DESC, method ASC
        """, [user_id, start, end])

        return [
            PaymentMethodStat(method=r[0], total=float(r[1]), count=int(r[2]))
            for r in rows
        ]

    async def get_sales_by_date(
        self, user_id: str, start: datetime, end: datetime
    ) -> List[SalesDay]:
        """Daily invoice totals; days without invoices are omitted."""
        rows = await self._fetch_all(f"""
            SELECT
                strftime(created_at, '{DAY_FORMAT}') AS day,
                SUM(total_amount) AS sales,
                COUNT(*) AS orders
            FROM invoices
            WHERE user_id = ? AND created_at BETWEEN ? AND ?
            GROUP BY day
            ORDER BY day ASC
        """, [user_id, start, end])

        return [SalesDay(date=r[0], sales=float(r[1]), orders=int(r[2])) for r in rows]

    async def get_top_products(
        self, user_id: str, start: datetime, end: datetime, limit: int = 10
    ) -> List[TopProduct]:
        """Invoice lines grouped by description, ranked by line total."""
        rows = await self._fetch_all("""
            SELECT
                ii.description,
                SUM(ii.quantity) AS total_quantity,
                SUM(ii.total) AS total_amount,
                COUNT(*) AS order_count
            FROM invoice_items ii
            JOIN invoices i ON ii.invoice_id = i.id
            WHERE i.user_id = ? AND i.created_at BETWEEN ? AND ?
            GROUP BY ii.description
            ORDER BY total_amount DESC, ii.description ASC
            LIMIT ?
        """, [user_id, start, end, limit])

        return [
            TopProduct(
                product_name=r[0],
                total_quantity=float(r[1]),
                total_amount=float(r[2]),
                order_count=int(r[3]),
                rank=rank,
            )
            for rank, r in enumerate(rows, start=1)
        ]

    async def get_top_customers(
        self, user_id: str, start: datetime, end: datetime, limit: int = 10
    ) -> List[TopCustomer]:
        """Invoices grouped by the customer display name, ranked by total."""
        rows = await self._fetch_all("""
            SELECT
                customer_name,
                SUM(total_amount) AS total_amount,
                COUNT(*) AS invoice_count,
                AVG(total_amount) AS avg_order_value
            FROM invoices
            WHERE user_id = ? AND created_at BETWEEN ? AND ?
            GROUP BY customer_name
            ORDER BY total_amount DESC, customer_name ASC
            LIMIT ?
        """, [user_id, start, end, limit])

        return [
            TopCustomer(
                customer_name=r[0],
                total_amount=float(r[1]),
                invoice_count=int(r[2]),
                avg_order_value=float(r[3]),
                rank=rank,
            )
            for rank, r in enumerate(rows, start=1)
        ]

    async def get_payment_flow(
        self, user_id: str, start: datetime, end: datetime
    ) -> PaymentFlow:
        """Money in (Received) vs money out (Paid)."""
        rows = await self._fetch_all("""
            SELECT payment_type, SUM(amount), COUNT(*)
            FROM payments
            WHERE user_id = ? AND payment_date BETWEEN ? AND ?
            GROUP BY payment_type
        """, [user_id, start, end])

        flow = PaymentFlow()
        for payment_type, total, count in rows:
            totals = FlowTotals(total=float(total), count=int(count))
            if payment_type == PaymentType.RECEIVED.value:
                flow.money_in = totals
            elif payment_type == PaymentType.PAID.value:
                flow.money_out = totals
        return flow

    async def get_daily_payments(
        self, user_id: str, start: datetime, end: datetime
    ) -> List[DailyPayment]:
        rows = await self._fetch_all(f"""
            SELECT
                strftime(payment_date, '{DAY_FORMAT}') AS day,
                COALESCE(SUM(CASE WHEN payment_type = ? THEN amount ELSE 0 END), 0) AS received,
                COALESCE(SUM(CASE WHEN payment_type = ? THEN amount ELSE 0 END), 0) AS paid
            FROM payments
            WHERE user_id = ? AND payment_date BETWEEN ? AND ?
            GROUP BY day
            ORDER BY day ASC
        """, [PaymentType.RECEIVED.value, PaymentType.PAID.value, user_id, start, end])

        return [DailyPayment(date=r[0], received=float(r[1]), paid=float(r[2])) for r in rows]

    async def get_kpis(self, user_id: str, start: datetime, end: datetime) -> KPIs:
        """Customer/product counts are tenant-wide; invoice figures are window-scoped."""
        row = await self._fetch_one("""
            SELECT
                (SELECT COUNT(*) FROM customers WHERE user_id = ?),
                (SELECT COUNT(*) FROM items WHERE user_id = ?),
                COUNT(*),
                COALESCE(AVG(total_amount), 0)
            FROM invoices
            WHERE user_id = ? AND created_at BETWEEN ? AND ?
        """, [user_id, user_id, user_id, start, end])

        return KPIs(
            total_customers=int(row[0]),
            total_products=int(row[1]),
            total_invoices=int(row[2]),
            avg_order_value=float(row[3]),
            conversion_rate=0.0,
        )
