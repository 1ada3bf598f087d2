"""AnalyticsStore all-time business aggregates used by the chatbot."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

LOW_STOCK_THRESHOLD = 5


class BusinessDataMixin:

    async def get_business_summary(self, user_id: str) -> Dict[str, Any]:
        """All-time totals and record counts for one tenant."""
        row = await self._fetch_one("""
            SELECT
                (SELECT COALESCE(SUM(total_amount), 0) FROM invoices WHERE user_id = ?),
                (SELECT COALESCE(SUM(total_amount), 0) FROM purchases WHERE user_id = ?),
                (SELECT COALESCE(SUM(amount), 0) FROM expenses WHERE user_id = ?),
                (SELECT COUNT(*) FROM customers WHERE user_id = ?),
                (SELECT COUNT(*) FROM items WHERE user_id = ?),
                (SELECT COUNT(*) FROM invoices WHERE user_id = ?),
                (SELECT COUNT(*) FROM purchases WHERE user_id = ?)
        """, [user_id] * 7)

        total_sales, total_purchases, total_expenses = (float(v) for v in row[:3])
        return {
            "totalSales": total_sales,
            "totalPurchases": total_purchases,
            "totalExpenses": total_expenses,
            "totalRevenue": total_sales - total_purchases - total_expenses,
            "totalCustomers": int(row[3]),
            "totalProducts": int(row[4]),
            "totalInvoices": int(row[5]),
            "totalOrders": int(row[6]),
        }

    async def get_recent_invoices(self, user_id: str, limit: int = 10) -> List[Dict[str, Any]]:
        rows = await self._fetch_all("""
            SELECT id, customer_name, total_amount, status, created_at
            FROM invoices
            WHERE user_id = ?
            ORDER BY created_at DESC, id DESC
            LIMIT ?
        """, [user_id, limit])

        return [
            {
                "id": r[0],
                "customerName": r[1],
                "totalAmount": float(r[2]),
                "status": r[3],
                "createdAt": r[4].isoformat(),
            }
            for r in rows
        ]

    async def get_recent_payments(self, user_id: str, limit: int = 10) -> List[Dict[str, Any]]:
        rows = await self._fetch_all("""
            SELECT id, amount, payment_method, payment_type, status, payment_date
            FROM payments
            WHERE user_id = ?
            ORDER BY payment_date DESC, id DESC
            LIMIT ?
        """, [user_id, limit])

        return [
            {
                "id": r[0],
                "amount": float(r[1]),
                "paymentMethod": r[2],
                "paymentType": r[3],
                "status": r[4],
                "paymentDate": r[5].isoformat(),
            }
            for r in rows
        ]

    async def get_sales_by_month(self, user_id: str) -> Dict[str, float]:
        """Invoice totals keyed by YYYY-MM."""
        rows = await self._fetch_all("""
            SELECT strftime(created_at, '%Y-%m') AS month, SUM(total_amount)
            FROM invoices
            WHERE user_id = ?
            GROUP BY month
            ORDER BY month ASC
        """, [user_id])
        return {r[0]: float(r[1]) for r in rows}

    async def get_customer_totals(self, user_id: str, limit: int = 10) -> List[List[Any]]:
        """``[name, total]`` pairs for the best customers, all time."""
        rows = await self._fetch_all("""
            SELECT customer_name, SUM(total_amount) AS total
            FROM invoices
            WHERE user_id = ? AND customer_name IS NOT NULL AND customer_name <> ''
            GROUP BY customer_name
            ORDER BY total DESC, customer_name ASC
            LIMIT ?
        """, [user_id, limit])
        return [[r[0], float(r[1])] for r in rows]

    async def get_stock_alerts(self, user_id: str) -> Dict[str, int]:
        """Low-stock includes out-of-stock items, as both are counted from one pass."""
        row = await self._fetch_one("""
            SELECT
                COUNT(*) FILTER (WHERE current_stock <= ?),
                COUNT(*) FILTER (WHERE current_stock = 0)
            FROM inventory
            WHERE user_id = ?
        """, [LOW_STOCK_THRESHOLD, user_id])
        return {"lowStockItems": int(row[0]), "outOfStockItems": int(row[1])}

    async def get_company(self, user_id: str) -> Optional[Dict[str, Any]]:
        row = await self._fetch_one("""
            SELECT business_name, company_name, email, phone
            FROM companies
            WHERE user_id = ?
        """, [user_id])
        if not row:
            return None
        return {
            "businessName": row[0],
            "companyName": row[1],
            "email": row[2],
            "phone": row[3],
        }
