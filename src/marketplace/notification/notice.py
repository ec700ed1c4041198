"""StatusNotice — the snapshot handed from the order write path to the fan-out.

Built from an OrderPlaced or OrderStatusChanged event inside the request, then
processed on a worker thread with no access to the domain context, so it must
carry everything the channels need.
"""

from dataclasses import dataclass
from datetime import UTC, datetime


@dataclass(frozen=True)
class StatusNotice:
    order_id: str
    order_ref: str
    customer_id: str
    seller_id: str
    status: str
    total_amount: float
    occurred_at: datetime
    previous_status: str | None = None
    actor: str | None = None
    note: str | None = None
    customer_name: str | None = None
    customer_email: str | None = None
    customer_phone: str | None = None
    item_name: str | None = None
    restaurant: str | None = None
    quantity: int | None = None
    payment_method: str | None = None
    estimated_delivery: str | None = None
    cancellation_reason: str | None = None
    cancelled_by: str | None = None
    placed: bool = False

    @property
    def lane_key(self) -> str:
        """Notices for the same order are delivered one after another, in this key's lane."""
        return self.order_ref or self.order_id

    @classmethod
    def from_placed(cls, event) -> "StatusNotice":
        return cls(
            order_id=event.order_id,
            order_ref=str(event.order_ref),
            customer_id=str(event.customer_id),
            seller_id=str(event.seller_id),
            status=event.order_status,
            total_amount=event.total_amount,
            occurred_at=event.placed_at or datetime.now(UTC),
            actor="system",
            customer_name=event.customer_name,
            customer_email=event.customer_email,
            customer_phone=event.customer_phone,
            item_name=event.item_name,
            restaurant=event.restaurant,
            quantity=event.quantity,
            payment_method=event.payment_method,
            estimated_delivery=event.estimated_delivery,
            placed=True,
        )

    @classmethod
    def from_status_change(cls, event) -> "StatusNotice":
        return cls(
            order_id=event.order_id,
            order_ref=str(event.order_ref),
            customer_id=str(event.customer_id),
            seller_id=str(event.seller_id),
            status=event.order_status,
            total_amount=event.total_amount,
            occurred_at=event.changed_at or datetime.now(UTC),
            previous_status=event.previous_status,
            actor=event.actor,
            note=event.message,
            customer_name=event.customer_name,
            customer_email=event.customer_email,
            customer_phone=event.customer_phone,
            item_name=event.item_name,
            restaurant=event.restaurant,
            quantity=event.quantity,
            payment_method=event.payment_method,
            estimated_delivery=event.estimated_delivery,
            cancellation_reason=event.cancellation_reason,
            cancelled_by=event.cancelled_by,
        )
