"""
Rule-based business assistant.

Answers plain-language questions ("What's my total sales?") from an
all-time business summary of one tenant. Matching is keyword based and
checked in a fixed order; the first matching topic answers.
"""
import asyncio
from typing import Any, Dict, List


RECENT_LIMIT = 10
TOP_CUSTOMERS_LIMIT = 10


def format_inr(amount: float) -> str:
    """
    Format a number with Indian digit grouping (1,23,45,678.5).

    Up to three fraction digits are kept, trailing zeros dropped.
    """
    sign = "-" if amount < 0 else ""
    text = f"{abs(amount):.3f}".rstrip("0").rstrip(".")
    whole, _, fraction = text.partition(".")

    if len(whole) > 3:
        head, tail = whole[:-3], whole[-3:]
        groups = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        whole = ",".join(groups + [tail])

    return f"{sign}{whole}.{fraction}" if fraction else f"{sign}{whole}"


async def build_business_data(store, user_id: str) -> Dict[str, Any]:
    """Collect the summary the assistant answers from."""
    (
        summary,
        recent_invoices,
        recent_payments,
        sales_by_month,
        top_customers,
        stock,
        company,
    ) = await asyncio.gather(
        store.get_business_summary(user_id),
        store.get_recent_invoices(user_id, RECENT_LIMIT),
        store.get_recent_payments(user_id, RECENT_LIMIT),
        store.get_sales_by_month(user_id),
        store.get_customer_totals(user_id, TOP_CUSTOMERS_LIMIT),
        store.get_stock_alerts(user_id),
        store.get_company(user_id),
    )

    return {
        "summary": summary,
        "recentActivity": {
            "recentInvoices": recent_invoices,
            "recentPayments": recent_payments,
        },
        "analytics": {
            "salesByMonth": sales_by_month,
            "topCustomers": top_customers,
            "lowStockItems": stock["lowStockItems"],
            "outOfStockItems": stock["outOfStockItems"],
        },
        "company": company,
    }


def _has(text: str, *keywords: str) -> bool:
    return any(k in text for k in keywords)


def _bullets(lines: List[str]) -> str:
    return "\n".join(f"• {line}" for line in lines)


def _answer_sales(q: str, data: Dict[str, Any]) -> str:
    total_sales = data["summary"]["totalSales"]
    recent = data["recentActivity"]["recentInvoices"][:5]

    if _has(q, "total", "how much"):
        return f"Your total sales amount is ₹{format_inr(total_sales)}. This includes all invoices generated so far."

    if _has(q, "recent", "latest"):
        lines = [
            f"#{inv['id']} {inv['customerName']}: ₹{format_inr(inv['totalAmount'])} ({inv['status']})"
            for inv in recent
        ]
        return f"Here are your recent sales:\n{_bullets(lines)}"

    return f"Your total sales: ₹{format_inr(total_sales)}\nRecent sales: {len(recent)} invoices in the last period."


def _answer_customers(q: str, data: Dict[str, Any]) -> str:
    total_customers = data["summary"]["totalCustomers"]
    top = data["analytics"]["topCustomers"]

    if _has(q, "how many", "total"):
        return f"You have {total_customers} customers in your database."

    if _has(q, "top", "best"):
        lines = [f"{name}: ₹{format_inr(amount)}" for name, amount in top[:5]]
        return f"Your top customers by sales:\n{_bullets(lines)}"

    if top:
        name, amount = top[0]
        return f"You have {total_customers} customers. Your top customer is {name} with ₹{format_inr(amount)} in sales."
    return f"You have {total_customers} customers. Your top customer is N/A with ₹0 in sales."


def _answer_inventory(q: str, data: Dict[str, Any]) -> str:
    total_products = data["summary"]["totalProducts"]
    low = data["analytics"]["lowStockItems"]
    out = data["analytics"]["outOfStockItems"]

    if _has(q, "low", "running out"):
        return (
            f"You have {low} items with low stock (≤5 units) and {out} items out of stock. "
            "Consider restocking these items."
        )

    if _has(q, "how many", "total"):
        return f"You have {total_products} products in your inventory."

    return "Inventory Status:\n" + _bullets([
        f"Total Products: {total_products}",
        f"Low Stock Items: {low}",
        f"Out of Stock: {out}",
    ])


def _answer_financial(q: str, data: Dict[str, Any]) -> str:
    s = data["summary"]
    return "Financial Summary:\n" + _bullets([
        f"Total Sales: ₹{format_inr(s['totalSales'])}",
        f"Total Purchases: ₹{format_inr(s['totalPurchases'])}",
        f"Total Expenses: ₹{format_inr(s['totalExpenses'])}",
        f"Net Revenue: ₹{format_inr(s['totalRevenue'])}",
    ])


def _answer_invoices(q: str, data: Dict[str, Any]) -> str:
    total_invoices = data["summary"]["totalInvoices"]
    recent = data["recentActivity"]["recentInvoices"]

    if _has(q, "pending", "unpaid"):
        pending = [inv for inv in recent if inv["status"] == "pending"]
        return f"You have {len(pending)} pending invoices. Consider following up with customers for payment."

    if _has(q, "how many", "total"):
        return f"You have generated {total_invoices} invoices so far."

    return "Invoice Summary:\n" + _bullets([
        f"Total Invoices: {total_invoices}",
        f"Recent Activity: {len(recent)} invoices in the last period",
    ])


def _answer_payments(q: str, data: Dict[str, Any]) -> str:
    recent = data["recentActivity"]["recentPayments"]
    total_revenue = data["summary"]["totalRevenue"]

    if _has(q, "recent", "latest"):
        lines = [
            f"₹{format_inr(p['amount'])} via {p['paymentMethod']} ({p['status']})"
            for p in recent[:5]
        ]
        return f"Recent payments:\n{_bullets(lines)}"

    return "Payment Summary:\n" + _bullets([
        f"Total Revenue: ₹{format_inr(total_revenue)}",
        f"Recent Payments: {len(recent)} transactions",
    ])


def _answer_company(q: str, data: Dict[str, Any]) -> str:
    company = data.get("company")
    if not company:
        return "Company profile information is not available. Please update your company profile in Settings."

    return "Company Information:\n" + _bullets([
        f"Business Name: {company.get('businessName') or 'Not set'}",
        f"Company Name: {company.get('companyName') or 'Not set'}",
        f"Email: {company.get('email') or 'Not set'}",
        f"Phone: {company.get('phone') or 'Not set'}",
    ])


def _answer_help(q: str, data: Dict[str, Any]) -> str:
    return (
        "I can help you with:\n"
        + _bullets([
            "Sales and revenue information",
            "Customer data and analytics",
            "Inventory and stock levels",
            "Invoice and payment status",
            "Financial summaries",
            "Company profile information",
        ])
        + "\n\nJust ask me questions like:\n"
        + _bullets([
            '"What\'s my total sales?"',
            '"How many customers do I have?"',
            '"Show me low stock items"',
            '"What\'s my profit this month?"',
        ])
    )


# Checked in order; first match answers
RULES = [
    (("sales", "revenue", "income"), _answer_sales),
    (("customer", "client"), _answer_customers),
    (("inventory", "stock", "product"), _answer_inventory),
    (("profit", "financial", "summary"), _answer_financial),
    (("invoice", "bill"), _answer_invoices),
    (("payment", "paid", "money"), _answer_payments),
    (("company", "business", "profile"), _answer_company),
    (("help", "what can", "how to"), _answer_help),
]


def answer_query(query: str, data: Dict[str, Any]) -> str:
    """Answer a question from business data collected by build_business_data()."""
    q = query.lower()
    for keywords, answer in RULES:
        if _has(q, *keywords):
            return answer(q, data)

    return (
        f'I understand you\'re asking about "{query}". I can help you with sales, customers, '
        "inventory, invoices, payments, and financial data. Try asking something like:\n"
        + _bullets([
            '"What\'s my total sales?"',
            '"How many customers do I have?"',
            '"Show me my recent invoices"',
            '"What\'s my inventory status?"',
        ])
    )
