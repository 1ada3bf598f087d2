"""
Tests for core.chatbot answer rules.
"""
import pytest

from core.chatbot import answer_query, format_inr


def make_data(**overrides):
    data = {
        "summary": {
            "totalSales": 250000.0,
            "totalPurchases": 40000.0,
            "totalExpenses": 10000.0,
            "totalRevenue": 200000.0,
            "totalCustomers": 12,
            "totalProducts": 30,
            "totalInvoices": 45,
            "totalOrders": 8,
        },
        "recentActivity": {
            "recentInvoices": [
                {"id": 7, "customerName": "Acme", "totalAmount": 1180.0, "status": "pending"},
                {"id": 6, "customerName": "Globex", "totalAmount": 400.0, "status": "paid"},
            ],
            "recentPayments": [
                {"id": 3, "amount": 500.0, "paymentMethod": "UPI", "paymentType": "Received", "status": "completed"},
            ],
        },
        "analytics": {
            "salesByMonth": {"2025-01": 250000.0},
            "topCustomers": [["Acme", 150000.0], ["Globex", 100000.0]],
            "lowStockItems": 4,
            "outOfStockItems": 1,
        },
        "company": {
            "businessName": "Acme Traders",
            "companyName": None,
            "email": "hi@acme.test",
            "phone": None,
        },
    }
    data.update(overrides)
    return data


class TestFormatInr:
    """Tests for Indian digit grouping."""

    @pytest.mark.parametrize("amount,expected", [
        (0, "0"),
        (999, "999"),
        (1000, "1,000"),
        (123456, "1,23,456"),
        (12345678, "1,23,45,678"),
        (1180.5, "1,180.5"),
        (10.125, "10.125"),
        (-250000, "-2,50,000"),
    ])
    def test_grouping(self, amount, expected):
        assert format_inr(amount) == expected


class TestAnswerQuery:
    """Tests for keyword routing and answer texts."""

    def test_total_sales(self):
        answer = answer_query("What's my total sales?", make_data())
        assert answer == "Your total sales amount is ₹2,50,000. This includes all invoices generated so far."

    def test_recent_sales_lists_invoices(self):
        answer = answer_query("show recent sales", make_data())
        assert answer.startswith("Here are your recent sales:")
        assert "• #7 Acme: ₹1,180 (pending)" in answer

    def test_customer_count(self):
        assert answer_query("How many customers do I have?", make_data()) == \
            "You have 12 customers in your database."

    def test_top_customers(self):
        answer = answer_query("who are my best clients", make_data())
        assert "• Acme: ₹1,50,000" in answer
        assert "• Globex: ₹1,00,000" in answer

    def test_customer_default_without_top(self):
        data = make_data()
        data["analytics"]["topCustomers"] = []
        assert "N/A" in answer_query("customer", data)

    def test_low_stock(self):
        answer = answer_query("Show me low stock items", make_data())
        assert "4 items with low stock" in answer
        assert "1 items out of stock" in answer

    def test_sales_wins_over_customers(self):
        """Topics are checked in a fixed order; the first match answers."""
        answer = answer_query("total sales per customer", make_data())
        assert answer.startswith("Your total sales amount")

    def test_financial_summary(self):
        answer = answer_query("profit please", make_data())
        assert "• Net Revenue: ₹2,00,000" in answer

    def test_pending_invoices(self):
        answer = answer_query("any unpaid invoice?", make_data())
        assert answer.startswith("You have 1 pending invoices.")

    def test_recent_payments(self):
        answer = answer_query("latest payment", make_data())
        assert "• ₹500 via UPI (completed)" in answer

    def test_company_profile(self):
        answer = answer_query("company details", make_data())
        assert "• Business Name: Acme Traders" in answer
        assert "• Company Name: Not set" in answer

    def test_company_missing(self):
        answer = answer_query("company details", make_data(company=None))
        assert answer.startswith("Company profile information is not available.")

    def test_help(self):
        assert answer_query("help", make_data()).startswith("I can help you with:")

    def test_fallback_echoes_query(self):
        answer = answer_query("Weather tomorrow?", make_data())
        assert 'asking about "Weather tomorrow?"' in answer
