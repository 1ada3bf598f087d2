"""
Domain models for the analytics core.

Provides type-safe dataclasses for the per-(user, period) AnalyticsSnapshot
and for the source records (invoices, payments, expenses, purchases,
customers, items) the snapshot is computed from.

All timestamps are naive UTC datetimes; calendar-day grouping is done in UTC.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


def utcnow() -> datetime:
    """Current time as a naive UTC datetime (the store's timestamp convention)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# ═══════════════════════════════════════════════════════════════════════════════
# ENUMS
# ═══════════════════════════════════════════════════════════════════════════════

class Period(str, Enum):
    """Rolling window selector for a snapshot."""
    LAST_7_DAYS = "7days"
    LAST_30_DAYS = "30days"
    LAST_90_DAYS = "90days"
    LAST_YEAR = "1year"
    CUSTOM = "custom"

    @classmethod
    def values(cls) -> List[str]:
        return [p.value for p in cls]

    def resolve(self, now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
        """
        Concrete [start, end] window ending at now.

        ``custom`` has no derivation rule of its own and falls back to 30 days.
        """
        end = now or utcnow()
        if self is Period.LAST_YEAR:
            try:
                start = end.replace(year=end.year - 1)
            except ValueError:
                # Feb 29 -> Mar 1 of the previous year
                start = end.replace(year=end.year - 1, month=3, day=1)
            return start, end

        days = {
            Period.LAST_7_DAYS: 7,
            Period.LAST_30_DAYS: 30,
            Period.LAST_90_DAYS: 90,
        }.get(self, 30)
        return end - timedelta(days=days), end


class PaymentType(str, Enum):
    """Direction of a payment."""
    RECEIVED = "Received"
    PAID = "Paid"


# ═══════════════════════════════════════════════════════════════════════════════
# SNAPSHOT FRAGMENTS
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class PaymentMethodStat:
    method: str
    total: float = 0.0
    count: int = 0
    percentage: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "method": self.method,
            "total": self.total,
            "count": self.count,
            "percentage": self.percentage,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PaymentMethodStat":
        return cls(
            method=data.get("method") or "Unknown",
            total=float(data.get("total", 0)),
            count=int(data.get("count", 0)),
            percentage=float(data.get("percentage", 0)),
        )


@dataclass
class SalesDay:
    date: str  # YYYY-MM-DD
    sales: float = 0.0
    orders: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"date": self.date, "sales": self.sales, "orders": self.orders}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SalesDay":
        return cls(
            date=data["date"],
            sales=float(data.get("sales", 0)),
            orders=int(data.get("orders", 0)),
        )


@dataclass
class TopProduct:
    product_name: str
    total_quantity: float = 0.0
    total_amount: float = 0.0
    order_count: int = 0
    rank: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "productName": self.product_name,
            "totalQuantity": self.total_quantity,
            "totalAmount": self.total_amount,
            "orderCount": self.order_count,
            "rank": self.rank,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TopProduct":
        return cls(
            product_name=data["productName"],
            total_quantity=float(data.get("totalQuantity", 0)),
            total_amount=float(data.get("totalAmount", 0)),
            order_count=int(data.get("orderCount", 0)),
            rank=int(data["rank"]),
        )


@dataclass
class TopCustomer:
    customer_name: str
    total_amount: float = 0.0
    invoice_count: int = 0
    avg_order_value: float = 0.0
    rank: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "customerName": self.customer_name,
            "totalAmount": self.total_amount,
            "invoiceCount": self.invoice_count,
            "avgOrderValue": self.avg_order_value,
            "rank": self.rank,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TopCustomer":
        return cls(
            customer_name=data["customerName"],
            total_amount=float(data.get("totalAmount", 0)),
            invoice_count=int(data.get("invoiceCount", 0)),
            avg_order_value=float(data.get("avgOrderValue", 0)),
            rank=int(data["rank"]),
        )


@dataclass
class FlowTotals:
    total: float = 0.0
    count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"total": self.total, "count": self.count}


@dataclass
class PaymentFlow:
    money_in: FlowTotals = field(default_factory=FlowTotals)
    money_out: FlowTotals = field(default_factory=FlowTotals)

    def to_dict(self) -> Dict[str, Any]:
        return {"moneyIn": self.money_in.to_dict(), "moneyOut": self.money_out.to_dict()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PaymentFlow":
        money_in = data.get("moneyIn") or {}
        money_out = data.get("moneyOut") or {}
        return cls(
            money_in=FlowTotals(float(money_in.get("total", 0)), int(money_in.get("count", 0))),
            money_out=FlowTotals(float(money_out.get("total", 0)), int(money_out.get("count", 0))),
        )


@dataclass
class DailyPayment:
    date: str  # YYYY-MM-DD
    received: float = 0.0
    paid: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {"date": self.date, "received": self.received, "paid": self.paid}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DailyPayment":
        return cls(
            date=data["date"],
            received=float(data.get("received", 0)),
            paid=float(data.get("paid", 0)),
        )


@dataclass
class KPIs:
    total_customers: int = 0   # tenant-wide
    total_products: int = 0    # tenant-wide
    total_invoices: int = 0    # window-scoped
    avg_order_value: float = 0.0  # window-scoped
    conversion_rate: float = 0.0  # reserved, always 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalCustomers": self.total_customers,
            "totalProducts": self.total_products,
            "totalInvoices": self.total_invoices,
            "avgOrderValue": self.avg_order_value,
            "conversionRate": self.conversion_rate,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "KPIs":
        return cls(
            total_customers=int(data.get("totalCustomers", 0)),
            total_products=int(data.get("totalProducts", 0)),
            total_invoices=int(data.get("totalInvoices", 0)),
            avg_order_value=float(data.get("avgOrderValue", 0)),
            conversion_rate=float(data.get("conversionRate", 0)),
        )


@dataclass
class DateRange:
    period: str = Period.LAST_30_DAYS.value
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "period": self.period,
            "startDate": self.start_date.isoformat() if self.start_date else None,
            "endDate": self.end_date.isoformat() if self.end_date else None,
        }


# ═══════════════════════════════════════════════════════════════════════════════
# SNAPSHOT
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class AnalyticsSnapshot:
    """
    Latest computed analytics for one (user, period).

    Mutated only by the recompute orchestrator; net_profit and payment
    percentages are always derived, never set independently.
    """
    user_id: str
    period: str = Period.LAST_30_DAYS.value
    date_range: DateRange = field(default_factory=DateRange)

    total_sales: float = 0.0
    total_purchases: float = 0.0
    total_expenses: float = 0.0
    net_profit: float = 0.0

    payment_methods: List[PaymentMethodStat] = field(default_factory=list)
    sales_by_date: List[SalesDay] = field(default_factory=list)
    top_products: List[TopProduct] = field(default_factory=list)
    top_customers: List[TopCustomer] = field(default_factory=list)
    payment_flow: PaymentFlow = field(default_factory=PaymentFlow)
    daily_payments: List[DailyPayment] = field(default_factory=list)
    kpis: KPIs = field(default_factory=KPIs)

    last_updated: datetime = field(default_factory=utcnow)

    def __post_init__(self):
        self.date_range.period = self.period

    @classmethod
    def empty(cls, user_id: str, period: str) -> "AnalyticsSnapshot":
        """All-zero snapshot with empty sequences."""
        return cls(user_id=user_id, period=period, date_range=DateRange(period=period))

    def reset(self) -> None:
        """Reset every metric to its identity value in place."""
        self.total_sales = 0.0
        self.total_purchases = 0.0
        self.total_expenses = 0.0
        self.net_profit = 0.0
        self.payment_methods = []
        self.sales_by_date = []
        self.top_products = []
        self.top_customers = []
        self.payment_flow = PaymentFlow()
        self.daily_payments = []
        self.kpis = KPIs()

    def calculate_net_profit(self) -> float:
        self.net_profit = self.total_sales - self.total_purchases - self.total_expenses
        return self.net_profit

    def calculate_payment_percentages(self) -> List[PaymentMethodStat]:
        total_payments = sum(m.total for m in self.payment_methods)
        for method in self.payment_methods:
            method.percentage = (method.total / total_payments) * 100 if total_payments > 0 else 0.0
        return self.payment_methods

    def content_dict(self) -> Dict[str, Any]:
        """Metric content only (no timestamps); equal across idempotent recomputes."""
        return {
            "totalSales": self.total_sales,
            "totalPurchases": self.total_purchases,
            "totalExpenses": self.total_expenses,
            "netProfit": self.net_profit,
            "paymentMethods": [m.to_dict() for m in self.payment_methods],
            "salesByDate": [d.to_dict() for d in self.sales_by_date],
            "topProducts": [p.to_dict() for p in self.top_products],
            "topCustomers": [c.to_dict() for c in self.top_customers],
            "paymentFlow": self.payment_flow.to_dict(),
            "dailyPayments": [d.to_dict() for d in self.daily_payments],
            "kpis": self.kpis.to_dict(),
        }

    def to_dict(self) -> Dict[str, Any]:
        """camelCase representation used on the wire."""
        return {
            "userId": self.user_id,
            **self.content_dict(),
            "dateRange": self.date_range.to_dict(),
            "lastUpdated": self.last_updated.isoformat(),
        }


# ═══════════════════════════════════════════════════════════════════════════════
# SOURCE RECORDS
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class InvoiceItem:
    description: str
    quantity: float
    unit_price: float
    total: Optional[float] = None

    def __post_init__(self):
        if self.total is None:
            self.total = self.quantity * self.unit_price


@dataclass
class Invoice:
    """Sales invoice; totals follow the subtotal + tax rule unless supplied."""
    user_id: str
    customer_name: str
    items: List[InvoiceItem] = field(default_factory=list)
    tax_rate: float = 0.0
    total_amount: Optional[float] = None
    status: str = "draft"
    created_at: datetime = field(default_factory=utcnow)
    id: Optional[int] = None

    @property
    def subtotal(self) -> float:
        return sum(item.total for item in self.items)

    @property
    def tax_amount(self) -> float:
        return self.subtotal * self.tax_rate / 100

    def __post_init__(self):
        if self.total_amount is None:
            self.total_amount = self.subtotal + self.tax_amount


@dataclass
class Payment:
    user_id: str
    amount: float
    payment_method: str
    payment_type: PaymentType
    payment_date: datetime = field(default_factory=utcnow)
    status: str = "completed"
    customer_id: Optional[int] = None
    id: Optional[int] = None


@dataclass
class Expense:
    user_id: str
    amount: float
    category: str = "Others"
    description: str = ""
    created_at: datetime = field(default_factory=utcnow)
    id: Optional[int] = None


@dataclass
class Purchase:
    user_id: str
    total_amount: float
    vendor_name: str = ""
    created_at: datetime = field(default_factory=utcnow)
    id: Optional[int] = None


@dataclass
class Customer:
    user_id: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    id: Optional[int] = None


@dataclass
class Item:
    user_id: str
    name: str
    selling_price: float = 0.0
    id: Optional[int] = None
