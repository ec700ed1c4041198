"""Pydantic request/response schemas for the marketplace API.

These are the external contracts; they are kept apart from the Protean
commands and aggregates they are translated into.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from marketplace.order.order import Actor


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class ItemSchema(BaseModel):
    name: str
    price: float = Field(ge=0)
    quantity: int = Field(ge=1, default=1)
    restaurant: str | None = None
    description: str | None = None


class BreakdownSchema(BaseModel):
    item_price: float = 0.0
    delivery_fee: float = 0.0
    platform_fee: float = 0.0
    tax: float = 0.0


class OrderDraftSchema(BaseModel):
    customer_id: str
    seller_id: str
    customer_name: str | None = None
    customer_email: str | None = None
    customer_phone: str | None = None
    delivery_address: str | None = None
    estimated_delivery: str | None = None
    item: ItemSchema
    breakdown: BreakdownSchema | None = None
    total_amount: float = Field(gt=0)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "customer_id": "cust-001",
                    "seller_id": "seller-001",
                    "customer_name": "Asha",
                    "customer_email": "asha@example.com",
                    "customer_phone": "9876543210",
                    "delivery_address": "12 MG Road, Bengaluru",
                    "item": {"name": "Paneer Tikka", "price": 250.0, "quantity": 2, "restaurant": "Spice Hub"},
                    "breakdown": {"item_price": 500.0, "delivery_fee": 30.0, "platform_fee": 5.0, "tax": 25.0},
                    "total_amount": 560.0,
                }
            ]
        }
    }


# ---------------------------------------------------------------------------
# Order Request Schemas
# ---------------------------------------------------------------------------
class TransitionRequest(BaseModel):
    target_status: str
    actor: str
    note: str | None = Field(default=None, max_length=500)


class RejectOrderRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=500)


class CancelOrderRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=500)
    actor: str = Actor.CUSTOMER.value


# ---------------------------------------------------------------------------
# Payment Request Schemas
# ---------------------------------------------------------------------------
class VerifyPaymentRequest(BaseModel):
    gateway_order_id: str
    gateway_payment_id: str
    signature: str
    payment_method: str = "razorpay"
    order: OrderDraftSchema


class CashOnDeliveryRequest(BaseModel):
    order: OrderDraftSchema


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class TimelineEntryResponse(BaseModel):
    sequence: int
    status: str
    actor: str
    message: str | None = None
    timestamp: datetime


class OrderResponse(BaseModel):
    id: str
    order_id: str
    customer_id: str
    seller_id: str
    order_status: str
    payment_method: str
    payment_status: str
    total_amount: float
    item_name: str | None = None
    quantity: int | None = None
    estimated_delivery: str | None = None
    cancellation_reason: str | None = None
    cancelled_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    timeline: list[TimelineEntryResponse] = []

    @classmethod
    def from_order(cls, order) -> "OrderResponse":
        return cls(
            id=str(order.id),
            order_id=order.order_id,
            customer_id=str(order.customer_id),
            seller_id=str(order.seller_id),
            order_status=order.order_status,
            payment_method=order.payment_method,
            payment_status=order.payment_status,
            total_amount=order.total_amount,
            item_name=order.item.name if order.item else None,
            quantity=order.item.quantity if order.item else None,
            estimated_delivery=order.estimated_delivery,
            cancellation_reason=order.cancellation_reason,
            cancelled_by=order.cancelled_by,
            created_at=order.created_at,
            updated_at=order.updated_at,
            timeline=[
                TimelineEntryResponse(
                    sequence=entry.sequence,
                    status=entry.status,
                    actor=entry.actor,
                    message=entry.message,
                    timestamp=entry.timestamp,
                )
                for entry in order.history
            ],
        )


class SettlementResponse(BaseModel):
    seller_id: str
    week: str
    period_start: datetime
    period_end: datetime
    gross_revenue: Decimal
    platform_fee: Decimal
    tcs: Decimal
    tds: Decimal
    tax_withheld: Decimal
    net_payable: Decimal
    order_count: int
    online_order_count: int
    cod_order_count: int
    online_amount: Decimal
    cod_amount: Decimal
    order_ids: list[str]

    @classmethod
    def from_period(cls, period) -> "SettlementResponse":
        return cls(week=period.week_label, **period.to_dict())


class RecentOrderResponse(BaseModel):
    order_id: str
    customer_name: str | None = None
    order_status: str
    payment_method: str
    payment_status: str
    total_amount: Decimal
    created_at: datetime


class DashboardResponse(BaseModel):
    seller_id: str
    generated_at: datetime
    summary: SettlementResponse
    current_week: SettlementResponse
    past_weeks: list[SettlementResponse]
    daily: list[SettlementResponse]
    recent_orders: list[RecentOrderResponse]

    @classmethod
    def from_dashboard(cls, dashboard) -> "DashboardResponse":
        return cls(
            seller_id=dashboard.seller_id,
            generated_at=dashboard.generated_at,
            summary=SettlementResponse.from_period(dashboard.summary),
            current_week=SettlementResponse.from_period(dashboard.current_week),
            past_weeks=[SettlementResponse.from_period(p) for p in dashboard.past_weeks],
            daily=[SettlementResponse.from_period(p) for p in dashboard.daily],
            recent_orders=[RecentOrderResponse(**o) for o in dashboard.recent_orders],
        )


class DeliveryResponse(BaseModel):
    target_channel: str
    recipient_key: str
    delivered: bool
    order_id: str | None = None
    status: str | None = None
    event_name: str | None = None
    error: str | None = None
    attempted_at: datetime
