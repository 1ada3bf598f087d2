"""AnalyticsStore source-collection writes (invoices, payments, expenses, ...)."""
from __future__ import annotations

from typing import Optional

from core.models import (
    Customer, Expense, Invoice, Item, Payment, PaymentType, Purchase, utcnow,
)


class SourcesMixin:

    async def add_invoice(self, invoice: Invoice) -> int:
        """Insert an invoice together with its line items."""

        def _insert(conn) -> int:
            invoice_id = conn.execute("""
                INSERT INTO invoices
                    (user_id, customer_name, subtotal, tax_rate, tax_amount,
                     total_amount, status, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                RETURNING id
            """, [
                invoice.user_id, invoice.customer_name, invoice.subtotal,
                invoice.tax_rate, invoice.tax_amount, invoice.total_amount,
                invoice.status, invoice.created_at,
            ]).fetchone()[0]

            if invoice.items:
                conn.executemany("""
                    INSERT INTO invoice_items (invoice_id, description, quantity, unit_price, total)
                    VALUES (?, ?, ?, ?, ?)
                """, [
                    [invoice_id, item.description, item.quantity, item.unit_price, item.total]
                    for item in invoice.items
                ])
            return invoice_id

        invoice.id = await self._transaction(_insert, "add_invoice")
        return invoice.id

    async def add_payment(self, payment: Payment) -> int:
        row = await self._fetch_one("""
            INSERT INTO payments
                (user_id, customer_id, amount, payment_method, payment_type,
                 status, payment_date, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            RETURNING id
        """, [
            payment.user_id, payment.customer_id, payment.amount,
            payment.payment_method, PaymentType(payment.payment_type).value,
            payment.status, payment.payment_date, utcnow(),
        ])
        payment.id = row[0]
        return payment.id

    async def add_expense(self, expense: Expense) -> int:
        row = await self._fetch_one("""
            INSERT INTO expenses (user_id, amount, category, description, created_at)
            VALUES (?, ?, ?, ?, ?)
            RETURNING id
        """, [
            expense.user_id, expense.amount, expense.category,
            expense.description, expense.created_at,
        ])
        expense.id = row[0]
        return expense.id

    async def add_purchase(self, purchase: Purchase) -> int:
        row = await self._fetch_one("""
            INSERT INTO purchases (user_id, vendor_name, total_amount, created_at)
            VALUES (?, ?, ?, ?)
            RETURNING id
        """, [purchase.user_id, purchase.vendor_name, purchase.total_amount, purchase.created_at])
        purchase.id = row[0]
        return purchase.id

    async def add_customer(self, customer: Customer) -> int:
        row = await self._fetch_one("""
            INSERT INTO customers (user_id, name, email, phone, created_at)
            VALUES (?, ?, ?, ?, ?)
            RETURNING id
        """, [customer.user_id, customer.name, customer.email, customer.phone, utcnow()])
        customer.id = row[0]
        return customer.id

    async def add_item(self, item: Item, current_stock: Optional[float] = None) -> int:
        """Insert a catalog item, optionally with its opening stock level."""
        row = await self._fetch_one("""
            INSERT INTO items (user_id, name, selling_price, created_at)
            VALUES (?, ?, ?, ?)
            RETURNING id
        """, [item.user_id, item.name, item.selling_price, utcnow()])
        item.id = row[0]
        if current_stock is not None:
            await self.set_stock(item.user_id, item.id, current_stock)
        return item.id

    async def set_stock(self, user_id: str, item_id: int, current_stock: float) -> None:
        await self._execute("""
            INSERT INTO inventory (user_id, item_id, current_stock)
            VALUES (?, ?, ?)
            ON CONFLICT (user_id, item_id) DO UPDATE SET current_stock = EXCLUDED.current_stock
        """, [user_id, item_id, current_stock])

    async def upsert_company(
        self,
        user_id: str,
        business_name: Optional[str] = None,
        company_name: Optional[str] = None,
        email: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> None:
        await self._execute("""
            INSERT INTO companies (user_id, business_name, company_name, email, phone)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT (user_id) DO UPDATE SET
                business_name = EXCLUDED.business_name,
                company_name = EXCLUDED.company_name,
                email = EXCLUDED.email,
                phone = EXCLUDED.phone
        """, [user_id, business_name, company_name, email, phone])
