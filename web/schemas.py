"""
Pydantic request/response models for API endpoints.

Provides type-safe models with automatic validation and documentation.
Field names follow the camelCase wire format the dashboard client expects.
"""
from datetime import datetime
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field

from core.models import PaymentType
from core.validators import MAX_AMOUNT, MAX_QUANTITY


# ═══════════════════════════════════════════════════════════════════════════════
# ANALYTICS
# ═══════════════════════════════════════════════════════════════════════════════

class GroupedTotal(BaseModel):
    """A grouped total keyed by `_id` (payment method, day, flow direction)."""
    id: str = Field(alias="_id", serialization_alias="_id")
    total: float = 0
    count: int = 0


class OverviewResponse(BaseModel):
    """Totals, payment methods and daily sales for one period."""
    totalSales: float
    totalPurchases: float
    totalExpenses: float
    netProfit: float
    paymentMethods: List[GroupedTotal]
    salesByDate: List[GroupedTotal]
    lastUpdated: datetime


class TopProductResponse(BaseModel):
    id: str = Field(alias="_id", serialization_alias="_id")
    totalQuantity: float
    totalAmount: float
    count: int


class TopCustomerResponse(BaseModel):
    id: str = Field(alias="_id", serialization_alias="_id")
    totalAmount: float
    invoiceCount: int
    avgOrderValue: float


class DailyPaymentResponse(BaseModel):
    id: str = Field(alias="_id", serialization_alias="_id")
    received: float
    paid: float


class PaymentsResponse(BaseModel):
    """Money in/out, method breakdown and daily payments for one period."""
    paymentFlow: List[GroupedTotal]
    paymentMethods: List[GroupedTotal]
    dailyPayments: List[DailyPaymentResponse]


class UpdateAnalyticsRequest(BaseModel):
    period: Optional[str] = Field(None, description="7days, 30days, 90days, 1year or custom")


class UpdateAnalyticsResponse(BaseModel):
    message: str
    lastUpdated: datetime


class ClearAnalyticsResponse(BaseModel):
    message: str
    deletedCount: int


# ═══════════════════════════════════════════════════════════════════════════════
# SOURCE DATA
# ═══════════════════════════════════════════════════════════════════════════════

class InvoiceItemRequest(BaseModel):
    description: str = Field(..., min_length=1)
    quantity: float = Field(..., gt=0, le=MAX_QUANTITY)
    unitPrice: float = Field(..., ge=0, le=MAX_AMOUNT)


class CreateInvoiceRequest(BaseModel):
    customerName: str = Field(..., min_length=1)
    items: List[InvoiceItemRequest] = Field(..., min_length=1)
    taxRate: float = Field(0, ge=0, le=100)
    status: str = "draft"
    createdAt: Optional[datetime] = None


class CreatePaymentRequest(BaseModel):
    amount: float = Field(..., gt=0, le=MAX_AMOUNT)
    paymentMethod: Optional[str] = None
    paymentType: PaymentType
    paymentDate: Optional[datetime] = None
    status: str = "completed"
    customerId: Optional[int] = None


class CreateExpenseRequest(BaseModel):
    amount: float = Field(..., gt=0, le=MAX_AMOUNT)
    category: str = "Others"
    description: str = ""
    createdAt: Optional[datetime] = None


class CreatePurchaseRequest(BaseModel):
    totalAmount: float = Field(..., gt=0, le=MAX_AMOUNT)
    vendorName: str = ""
    createdAt: Optional[datetime] = None


class CreateCustomerRequest(BaseModel):
    name: str = Field(..., min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None


class CreateItemRequest(BaseModel):
    name: str = Field(..., min_length=1)
    sellingPrice: float = Field(0, ge=0, le=MAX_AMOUNT)
    currentStock: Optional[float] = Field(None, ge=0)


class CreatedResponse(BaseModel):
    id: int
    message: str


# ═══════════════════════════════════════════════════════════════════════════════
# CHATBOT
# ═══════════════════════════════════════════════════════════════════════════════

class ChatbotQueryRequest(BaseModel):
    query: Optional[str] = None


class ChatbotQueryResponse(BaseModel):
    query: str
    response: str
    timestamp: datetime


# ═══════════════════════════════════════════════════════════════════════════════
# HEALTH & METRICS
# ═══════════════════════════════════════════════════════════════════════════════

class HealthResponse(BaseModel):
    """Health check response."""
    status: str = Field(description="Service status: healthy or degraded")
    version: str = Field(description="Application version")
    uptime_seconds: int = Field(description="Uptime in seconds")
    correlation_id: Optional[str] = Field(None, description="Request correlation ID")
    store: Optional[Dict[str, Any]] = Field(None, description="Row counts per table")
    store_status: str = Field(description="connected or error message")
    db_latency_ms: Optional[float] = None
    event_handlers: Dict[str, int] = Field(default_factory=dict)
    streams: Dict[str, Any] = Field(default_factory=dict)
    broker: Optional[Dict[str, int]] = Field(None, description="Redis relay stats when enabled")


class TimingStats(BaseModel):
    """Timing statistics for an operation."""
    count: int
    avg_ms: float
    min_ms: float
    max_ms: float
    p50_ms: Optional[float] = None


class MetricsResponse(BaseModel):
    """Application metrics response."""
    uptime_seconds: int
    correlation_id: Optional[str] = None
    requests: Dict[str, int] = Field(default_factory=dict)
    errors: Dict[str, int] = Field(default_factory=dict)
    timing: Dict[str, TimingStats] = Field(default_factory=dict)
