"""Order aggregate (CQRS) — the core of the marketplace domain.

An Order is created by payment verification, then moved through its lifecycle
by customers, sellers, the courier and the system. Every accepted move appends
one entry to an append-only timeline; the timeline is the audit trail.

State Machine:
    PENDING_SELLER → SELLER_ACCEPTED → PREPARING → READY → OUT_FOR_DELIVERY → DELIVERED
    PENDING_SELLER → SELLER_REJECTED
    {PENDING_SELLER, SELLER_ACCEPTED, PREPARING, READY} → CANCELLED (policy may narrow)
    SELLER_REJECTED, CANCELLED and DELIVERED are terminal.
"""

import random
import string
from datetime import UTC, datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import (
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from marketplace.config import get_settings
from marketplace.domain import marketplace
from marketplace.errors import InvalidTransition
from marketplace.order.events import OrderPlaced, OrderStatusChanged


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING_SELLER = "pending_seller"
    SELLER_ACCEPTED = "seller_accepted"
    SELLER_REJECTED = "seller_rejected"
    PREPARING = "preparing"
    READY = "ready"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class Actor(Enum):
    CUSTOMER = "customer"
    SELLER = "seller"
    SYSTEM = "system"
    DELIVERY = "delivery"


class PaymentMethod(Enum):
    ONLINE = "online"
    COD = "cod"
    UNSET = "unset"


class PaymentStatus(Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


# State machine transition map
_VALID_TRANSITIONS = {
    OrderStatus.PENDING_SELLER: {
        OrderStatus.SELLER_ACCEPTED,
        OrderStatus.SELLER_REJECTED,
        OrderStatus.CANCELLED,
    },
    OrderStatus.SELLER_ACCEPTED: {OrderStatus.PREPARING, OrderStatus.CANCELLED},
    OrderStatus.PREPARING: {OrderStatus.READY, OrderStatus.CANCELLED},
    OrderStatus.READY: {OrderStatus.OUT_FOR_DELIVERY, OrderStatus.CANCELLED},
    OrderStatus.OUT_FOR_DELIVERY: {OrderStatus.DELIVERED},
    OrderStatus.SELLER_REJECTED: set(),  # terminal
    OrderStatus.CANCELLED: set(),  # terminal
    OrderStatus.DELIVERED: set(),  # terminal
}

TERMINAL_STATES = frozenset(s for s, targets in _VALID_TRANSITIONS.items() if not targets)
_CANCELLABLE_STATES = {s for s, targets in _VALID_TRANSITIONS.items() if OrderStatus.CANCELLED in targets}

# Transitions that must carry a reason from the actor
_REASON_REQUIRED = {OrderStatus.SELLER_REJECTED, OrderStatus.CANCELLED}

_DEFAULT_MESSAGES = {
    OrderStatus.PENDING_SELLER: "Waiting for restaurant confirmation",
    OrderStatus.SELLER_ACCEPTED: "Restaurant confirmed your order",
    OrderStatus.SELLER_REJECTED: "Restaurant declined your order",
    OrderStatus.PREPARING: "The restaurant is preparing your food",
    OrderStatus.READY: "Your order is ready for pickup",
    OrderStatus.OUT_FOR_DELIVERY: "Your order is on its way",
    OrderStatus.DELIVERED: "Your order has been delivered",
    OrderStatus.CANCELLED: "Your order has been cancelled",
}


def cancellable_states() -> set[OrderStatus]:
    """States from which cancellation is currently allowed.

    The configured policy can only remove states from the built-in set; it can
    never make a state past ``ready`` cancellable.
    """
    configured = {OrderStatus(s) for s in get_settings().ORDER_CANCELLABLE_STATES}
    return configured & _CANCELLABLE_STATES


def generate_order_id(now: datetime | None = None) -> str:
    """Human readable order id: ``ORD`` + last 8 digits of the epoch millis + 2 random characters."""
    now = now or datetime.now(UTC)
    millis = str(int(now.timestamp() * 1000))[-8:]
    suffix = "".join(random.choices(string.ascii_uppercase + string.digits, k=2))
    return f"ORD{millis}{suffix}"


def _coerce(enum_cls, value, field: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        raise InvalidTransition({field: [f"Unknown {field.replace('_', ' ')}: {value}"]}) from None


def _as_utc(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@marketplace.value_object(part_of="Order")
class ItemSnapshot:
    """The dish as it was when the order was placed.

    Later menu edits never change what the customer ordered or paid for.
    """

    name = String(required=True, max_length=200)
    price = Float(required=True, min_value=0.0)
    quantity = Integer(required=True, min_value=1)
    restaurant = String(max_length=200)
    description = String(max_length=1000)


@marketplace.value_object(part_of="Order")
class PriceBreakdown:
    """Display-only split of the amount charged at checkout.

    Settlement never reads this; it works from ``total_amount`` with the rates
    in force at settlement time.
    """

    item_price = Float(default=0.0)
    delivery_fee = Float(default=0.0)
    platform_fee = Float(default=0.0)
    tax = Float(default=0.0)
    cod_fee = Float(default=0.0)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@marketplace.entity(part_of="Order")
class TimelineEntry:
    """One accepted status change, with who made it and when."""

    sequence = Integer(required=True, min_value=1)
    status = String(required=True, max_length=30, choices=OrderStatus)
    actor = String(required=True, max_length=20, choices=Actor)
    message = String(max_length=500)
    timestamp = DateTime(required=True)


# ---------------------------------------------------------------------------
# Aggregate Root (CQRS)
# ---------------------------------------------------------------------------
@marketplace.aggregate
class Order:
    order_id = String(required=True, max_length=20)
    customer_id = Identifier(required=True)
    seller_id = Identifier(required=True)
    customer_name = String(max_length=100)
    customer_email = String(max_length=254)
    customer_phone = String(max_length=20)
    delivery_address = Text()
    item = ValueObject(ItemSnapshot)
    total_amount = Float(required=True)
    breakdown = ValueObject(PriceBreakdown)
    payment_method = String(
        max_length=10,
        choices=PaymentMethod,
        default=PaymentMethod.UNSET.value,
    )
    payment_status = String(
        max_length=10,
        choices=PaymentStatus,
        default=PaymentStatus.PENDING.value,
    )
    gateway_order_id = String(max_length=100)
    gateway_payment_id = String(max_length=100)
    order_status = String(
        max_length=30,
        choices=OrderStatus,
        default=OrderStatus.PENDING_SELLER.value,
    )
    timeline = HasMany(TimelineEntry)
    cancelled_by = String(max_length=20)
    cancellation_reason = String(max_length=500)
    cancelled_at = DateTime()
    estimated_delivery = String(max_length=50, default="25-30 minutes")
    actual_delivery_time = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def total_amount_must_be_positive(self):
        if self.total_amount is None or self.total_amount <= 0:
            raise ValidationError({"total_amount": ["Order total must be greater than zero"]})

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        customer_id: str,
        seller_id: str,
        item: dict,
        total_amount: float,
        payment_method: str,
        payment_status: str,
        breakdown: dict | None = None,
        customer_name: str | None = None,
        customer_email: str | None = None,
        customer_phone: str | None = None,
        delivery_address: str | None = None,
        estimated_delivery: str | None = None,
        gateway_order_id: str | None = None,
        gateway_payment_id: str | None = None,
    ):
        """Create a new order awaiting the seller's decision.

        The initial ``pending_seller`` timeline entry is recorded with the
        ``system`` actor, since the order is created by payment verification
        rather than by a person.
        """
        now = datetime.now(UTC)
        order = cls(
            order_id=generate_order_id(now),
            customer_id=customer_id,
            seller_id=seller_id,
            customer_name=customer_name,
            customer_email=customer_email,
            customer_phone=customer_phone,
            delivery_address=delivery_address,
            item=ItemSnapshot(**item),
            total_amount=total_amount,
            breakdown=PriceBreakdown(**(breakdown or {})),
            payment_method=payment_method,
            payment_status=payment_status,
            gateway_order_id=gateway_order_id,
            gateway_payment_id=gateway_payment_id,
            order_status=OrderStatus.PENDING_SELLER.value,
            estimated_delivery=estimated_delivery or "25-30 minutes",
            created_at=now,
            updated_at=now,
        )
        message = _DEFAULT_MESSAGES[OrderStatus.PENDING_SELLER]
        order._append_timeline(OrderStatus.PENDING_SELLER, Actor.SYSTEM, message, now)
        order.raise_(
            OrderPlaced(
                order_id=order.order_id,
                order_ref=str(order.id),
                customer_id=str(customer_id),
                seller_id=str(seller_id),
                customer_name=customer_name,
                customer_email=customer_email,
                customer_phone=customer_phone,
                item_name=order.item.name,
                restaurant=order.item.restaurant,
                quantity=order.item.quantity,
                total_amount=order.total_amount,
                payment_method=order.payment_method,
                payment_status=order.payment_status,
                order_status=order.order_status,
                estimated_delivery=order.estimated_delivery,
                delivery_address=delivery_address,
                message=message,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Timeline
    # -------------------------------------------------------------------
    @property
    def history(self) -> list[TimelineEntry]:
        """Timeline entries in the order they were appended."""
        return sorted(self.timeline or [], key=lambda entry: entry.sequence)

    @property
    def latest_entry(self) -> TimelineEntry | None:
        history = self.history
        return history[-1] if history else None

    @property
    def is_terminal(self) -> bool:
        return OrderStatus(self.order_status) in TERMINAL_STATES

    def _append_timeline(self, status: OrderStatus, actor: Actor, message: str, at: datetime) -> TimelineEntry:
        latest = self.latest_entry
        entry = TimelineEntry(
            sequence=(latest.sequence + 1) if latest else 1,
            status=status.value,
            actor=actor.value,
            message=message,
            timestamp=at,
        )
        self.add_timeline(entry)
        return entry

    # -------------------------------------------------------------------
    # State transition helper
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status: OrderStatus) -> None:
        current = OrderStatus(self.order_status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise InvalidTransition(
                {"order_status": [f"Cannot transition from {current.value} to {target_status.value}"]}
            )
        if target_status == OrderStatus.CANCELLED and current not in cancellable_states():
            raise InvalidTransition({"order_status": [f"Orders in {current.value} can no longer be cancelled"]})

    # -------------------------------------------------------------------
    # Lifecycle transitions
    # -------------------------------------------------------------------
    def transition_to(self, target_status, actor, note: str | None = None) -> bool:
        """Move the order to ``target_status`` on behalf of ``actor``.

        Returns False (and changes nothing) when the same actor re-applies the
        transition that produced the current state, so duplicate webhooks and
        double clicks are harmless. Returns True when a new entry was recorded.
        """
        target = _coerce(OrderStatus, target_status, "order_status")
        actor = _coerce(Actor, actor, "actor")

        current = OrderStatus(self.order_status)
        latest = self.latest_entry
        if current == target and latest is not None and latest.actor == actor.value:
            return False

        self._assert_can_transition(target)

        reason = (note or "").strip()
        if target in _REASON_REQUIRED and not reason:
            raise InvalidTransition({"note": [f"A reason is required to move an order to {target.value}"]})

        now = datetime.now(UTC)
        if latest is not None:
            # Clock skew between app servers must not reorder the timeline
            now = max(now, _as_utc(latest.timestamp))

        message = reason or _DEFAULT_MESSAGES[target]
        self.order_status = target.value
        entry = self._append_timeline(target, actor, message, now)

        if target in _REASON_REQUIRED:
            self.cancelled_by = actor.value
            self.cancellation_reason = reason
            self.cancelled_at = now

        if target == OrderStatus.DELIVERED:
            self.actual_delivery_time = now
            # Cash is collected at the door
            if self.payment_method == PaymentMethod.COD.value:
                self.payment_status = PaymentStatus.COMPLETED.value

        self.updated_at = now
        self.raise_(
            OrderStatusChanged(
                order_id=self.order_id,
                order_ref=str(self.id),
                customer_id=str(self.customer_id),
                seller_id=str(self.seller_id),
                customer_name=self.customer_name,
                customer_email=self.customer_email,
                customer_phone=self.customer_phone,
                item_name=self.item.name if self.item else None,
                restaurant=self.item.restaurant if self.item else None,
                quantity=self.item.quantity if self.item else None,
                total_amount=self.total_amount,
                payment_method=self.payment_method,
                previous_status=current.value,
                order_status=target.value,
                actor=actor.value,
                message=message,
                sequence=entry.sequence,
                cancellation_reason=self.cancellation_reason,
                cancelled_by=self.cancelled_by,
                estimated_delivery=self.estimated_delivery,
                changed_at=now,
            )
        )
        return True

    def accept(self) -> bool:
        """Seller confirms they will prepare the order."""
        return self.transition_to(OrderStatus.SELLER_ACCEPTED, Actor.SELLER)

    def reject(self, reason: str) -> bool:
        """Seller declines the order; only possible before acceptance."""
        return self.transition_to(OrderStatus.SELLER_REJECTED, Actor.SELLER, reason)

    def cancel(self, reason: str, actor=Actor.CUSTOMER) -> bool:
        """Cancel the order before it leaves the restaurant."""
        return self.transition_to(OrderStatus.CANCELLED, actor, reason)
