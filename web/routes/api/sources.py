"""Source-data ingestion: invoices, payments, expenses, purchases, customers, items.

Each write that moves money schedules a background recompute of the caller's
tracked periods; the response never waits for it.
"""
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request

from core.analytics_service import AnalyticsService
from core.models import (
    Customer, Expense, Invoice, InvoiceItem, Item, Payment, Purchase, utcnow,
)
from core.store import AnalyticsStore
from core.validators import validate_amount
from web.schemas import (
    CreateCustomerRequest,
    CreatedResponse,
    CreateExpenseRequest,
    CreateInvoiceRequest,
    CreateItemRequest,
    CreatePaymentRequest,
    CreatePurchaseRequest,
)
from ._deps import limiter, get_service, get_store, get_user_id, get_logger, ValidationError, WRITE_LIMIT

router = APIRouter()
logger = get_logger(__name__)


def _naive_utc(value: Optional[datetime]) -> datetime:
    """Request timestamps may carry an offset; the store keeps naive UTC."""
    if value is None:
        return utcnow()
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


@router.post("/invoices", response_model=CreatedResponse, status_code=201)
@limiter.limit(WRITE_LIMIT)
async def create_invoice(
    request: Request,
    body: CreateInvoiceRequest,
    user_id: str = Depends(get_user_id),
    store: AnalyticsStore = Depends(get_store),
    service: AnalyticsService = Depends(get_service),
):
    """Record an invoice; totals are derived from its items and tax rate."""
    invoice = Invoice(
        user_id=user_id,
        customer_name=body.customerName,
        items=[
            InvoiceItem(description=i.description, quantity=i.quantity, unit_price=i.unitPrice)
            for i in body.items
        ],
        tax_rate=body.taxRate,
        status=body.status,
        created_at=_naive_utc(body.createdAt),
    )
    # Bounded items can still multiply past what the money columns hold
    try:
        validate_amount(invoice.total_amount, "totalAmount", allow_zero=True)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    invoice_id = await store.add_invoice(invoice)
    service.schedule_update(user_id)
    return {"id": invoice_id, "message": "Invoice created successfully"}


@router.post("/payments", response_model=CreatedResponse, status_code=201)
@limiter.limit(WRITE_LIMIT)
async def create_payment(
    request: Request,
    body: CreatePaymentRequest,
    user_id: str = Depends(get_user_id),
    store: AnalyticsStore = Depends(get_store),
    service: AnalyticsService = Depends(get_service),
):
    payment = Payment(
        user_id=user_id,
        amount=body.amount,
        payment_method=body.paymentMethod,
        payment_type=body.paymentType,
        payment_date=_naive_utc(body.paymentDate),
        status=body.status,
        customer_id=body.customerId,
    )
    payment_id = await store.add_payment(payment)
    service.schedule_update(user_id)
    return {"id": payment_id, "message": "Payment recorded successfully"}


@router.post("/expenses", response_model=CreatedResponse, status_code=201)
@limiter.limit(WRITE_LIMIT)
async def create_expense(
    request: Request,
    body: CreateExpenseRequest,
    user_id: str = Depends(get_user_id),
    store: AnalyticsStore = Depends(get_store),
    service: AnalyticsService = Depends(get_service),
):
    expense = Expense(
        user_id=user_id,
        amount=body.amount,
        category=body.category,
        description=body.description,
        created_at=_naive_utc(body.createdAt),
    )
    expense_id = await store.add_expense(expense)
    service.schedule_update(user_id)
    return {"id": expense_id, "message": "Expense created successfully"}


@router.post("/purchases", response_model=CreatedResponse, status_code=201)
@limiter.limit(WRITE_LIMIT)
async def create_purchase(
    request: Request,
    body: CreatePurchaseRequest,
    user_id: str = Depends(get_user_id),
    store: AnalyticsStore = Depends(get_store),
    service: AnalyticsService = Depends(get_service),
):
    purchase = Purchase(
        user_id=user_id,
        total_amount=body.totalAmount,
        vendor_name=body.vendorName,
        created_at=_naive_utc(body.createdAt),
    )
    purchase_id = await store.add_purchase(purchase)
    service.schedule_update(user_id)
    return {"id": purchase_id, "message": "Purchase created successfully"}


# ─── Catalog (no recompute: KPIs pick these up on the next read) ──────────────

@router.post("/customers", response_model=CreatedResponse, status_code=201)
@limiter.limit(WRITE_LIMIT)
async def create_customer(
    request: Request,
    body: CreateCustomerRequest,
    user_id: str = Depends(get_user_id),
    store: AnalyticsStore = Depends(get_store),
):
    customer_id = await store.add_customer(
        Customer(user_id=user_id, name=body.name, email=body.email, phone=body.phone)
    )
    return {"id": customer_id, "message": "Customer created successfully"}


@router.post("/items", response_model=CreatedResponse, status_code=201)
@limiter.limit(WRITE_LIMIT)
async def create_item(
    request: Request,
    body: CreateItemRequest,
    user_id: str = Depends(get_user_id),
    store: AnalyticsStore = Depends(get_store),
):
    item_id = await store.add_item(
        Item(user_id=user_id, name=body.name, selling_price=body.sellingPrice),
        current_stock=body.currentStock,
    )
    return {"id": item_id, "message": "Item created successfully"}
