"""Tests for the Order state machine — valid transitions, guards and the timeline."""

from datetime import UTC, datetime, timedelta

import pytest

from marketplace.config import Settings, set_settings
from marketplace.errors import InvalidTransition
from marketplace.order.events import OrderStatusChanged
from marketplace.order.order import Actor, Order, OrderStatus, PaymentMethod, PaymentStatus


def _make_order(payment_method=PaymentMethod.ONLINE, payment_status=PaymentStatus.COMPLETED):
    return Order.place(
        customer_id="cust-001",
        seller_id="seller-001",
        item={"name": "Masala Dosa", "price": 120.0, "quantity": 1, "restaurant": "Udupi Corner"},
        total_amount=150.0,
        payment_method=payment_method.value,
        payment_status=payment_status.value,
        customer_name="Ravi",
        customer_email="ravi@example.com",
    )


_PATH = [
    (OrderStatus.SELLER_ACCEPTED, Actor.SELLER),
    (OrderStatus.PREPARING, Actor.SELLER),
    (OrderStatus.READY, Actor.SELLER),
    (OrderStatus.OUT_FOR_DELIVERY, Actor.DELIVERY),
    (OrderStatus.DELIVERED, Actor.DELIVERY),
]


def _order_at_state(target_status, **kwargs):
    """Create an order and advance it along the happy path to the desired state."""
    order = _make_order(**kwargs)
    order._events.clear()
    if target_status == OrderStatus.PENDING_SELLER:
        return order

    for status, actor in _PATH:
        order.transition_to(status, actor)
        if status == target_status:
            order._events.clear()
            return order

    raise ValueError(f"Cannot create order at state {target_status}")


# ---------------------------------------------------------------
# Happy path transitions
# ---------------------------------------------------------------
class TestValidTransitions:
    def test_pending_to_accepted(self):
        order = _order_at_state(OrderStatus.PENDING_SELLER)
        assert order.accept() is True
        assert order.order_status == OrderStatus.SELLER_ACCEPTED.value

    def test_accepted_to_preparing(self):
        order = _order_at_state(OrderStatus.SELLER_ACCEPTED)
        order.transition_to(OrderStatus.PREPARING, Actor.SELLER)
        assert order.order_status == OrderStatus.PREPARING.value

    def test_preparing_to_ready(self):
        order = _order_at_state(OrderStatus.PREPARING)
        order.transition_to(OrderStatus.READY, Actor.SELLER)
        assert order.order_status == OrderStatus.READY.value

    def test_ready_to_out_for_delivery(self):
        order = _order_at_state(OrderStatus.READY)
        order.transition_to(OrderStatus.OUT_FOR_DELIVERY, Actor.DELIVERY)
        assert order.order_status == OrderStatus.OUT_FOR_DELIVERY.value

    def test_out_for_delivery_to_delivered(self):
        order = _order_at_state(OrderStatus.OUT_FOR_DELIVERY)
        order.transition_to(OrderStatus.DELIVERED, Actor.DELIVERY)
        assert order.order_status == OrderStatus.DELIVERED.value
        assert order.actual_delivery_time is not None

    def test_full_happy_path_records_every_step(self):
        order = _order_at_state(OrderStatus.DELIVERED)
        statuses = [entry.status for entry in order.history]
        assert statuses == [
            "pending_seller",
            "seller_accepted",
            "preparing",
            "ready",
            "out_for_delivery",
            "delivered",
        ]

    def test_status_strings_are_accepted(self):
        order = _order_at_state(OrderStatus.PENDING_SELLER)
        order.transition_to("seller_accepted", "seller")
        assert order.order_status == "seller_accepted"

    def test_delivery_completes_cod_payment(self):
        order = _order_at_state(
            OrderStatus.OUT_FOR_DELIVERY,
            payment_method=PaymentMethod.COD,
            payment_status=PaymentStatus.PENDING,
        )
        order.transition_to(OrderStatus.DELIVERED, Actor.DELIVERY)
        assert order.payment_status == PaymentStatus.COMPLETED.value


# ---------------------------------------------------------------
# Rejection and cancellation
# ---------------------------------------------------------------
class TestRejectionAndCancellation:
    def test_seller_rejects_pending_order(self):
        order = _order_at_state(OrderStatus.PENDING_SELLER)
        order.reject("out of stock")
        assert order.order_status == OrderStatus.SELLER_REJECTED.value
        assert order.cancellation_reason == "out of stock"
        assert order.cancelled_by == "seller"
        assert order.latest_entry.message == "out of stock"

    def test_reject_requires_reason(self):
        order = _order_at_state(OrderStatus.PENDING_SELLER)
        with pytest.raises(InvalidTransition) as exc:
            order.reject("   ")
        assert "note" in exc.value.messages
        assert order.order_status == OrderStatus.PENDING_SELLER.value

    def test_cannot_reject_after_acceptance(self):
        order = _order_at_state(OrderStatus.SELLER_ACCEPTED)
        with pytest.raises(InvalidTransition):
            order.reject("changed my mind")

    @pytest.mark.parametrize(
        "state",
        [OrderStatus.PENDING_SELLER, OrderStatus.SELLER_ACCEPTED, OrderStatus.PREPARING, OrderStatus.READY],
    )
    def test_cancellable_states(self, state):
        order = _order_at_state(state)
        order.cancel("ordered twice")
        assert order.order_status == OrderStatus.CANCELLED.value
        assert order.cancelled_at is not None

    def test_cannot_cancel_out_for_delivery(self):
        order = _order_at_state(OrderStatus.OUT_FOR_DELIVERY)
        with pytest.raises(InvalidTransition):
            order.cancel("too late")

    def test_cancel_policy_can_narrow_states(self):
        set_settings(Settings(ORDER_CANCELLABLE_STATES="pending_seller,seller_accepted"))
        order = _order_at_state(OrderStatus.PREPARING)
        with pytest.raises(InvalidTransition) as exc:
            order.cancel("too slow")
        assert "no longer be cancelled" in exc.value.messages["order_status"][0]

    def test_cancel_records_actor(self):
        order = _order_at_state(OrderStatus.PENDING_SELLER)
        order.cancel("restaurant closed", actor=Actor.SYSTEM)
        assert order.cancelled_by == "system"


# ---------------------------------------------------------------
# Guards
# ---------------------------------------------------------------
class TestInvalidTransitions:
    def test_cannot_go_back_to_pending(self):
        order = _order_at_state(OrderStatus.SELLER_ACCEPTED)
        with pytest.raises(InvalidTransition) as exc:
            order.transition_to(OrderStatus.PENDING_SELLER, Actor.SELLER)
        assert "seller_accepted to pending_seller" in exc.value.messages["order_status"][0]

    def test_cannot_skip_preparation(self):
        order = _order_at_state(OrderStatus.SELLER_ACCEPTED)
        with pytest.raises(InvalidTransition):
            order.transition_to(OrderStatus.OUT_FOR_DELIVERY, Actor.DELIVERY)

    @pytest.mark.parametrize("target", list(OrderStatus))
    def test_delivered_is_terminal(self, target):
        order = _order_at_state(OrderStatus.DELIVERED)
        with pytest.raises(InvalidTransition):
            order.transition_to(target, Actor.SYSTEM, "note")

    def test_rejected_is_terminal(self):
        order = _order_at_state(OrderStatus.PENDING_SELLER)
        order.reject("out of stock")
        with pytest.raises(InvalidTransition):
            order.accept()

    def test_unknown_status(self):
        order = _order_at_state(OrderStatus.PENDING_SELLER)
        with pytest.raises(InvalidTransition) as exc:
            order.transition_to("teleported", Actor.SELLER)
        assert "order_status" in exc.value.messages

    def test_unknown_actor(self):
        order = _order_at_state(OrderStatus.PENDING_SELLER)
        with pytest.raises(InvalidTransition) as exc:
            order.transition_to(OrderStatus.SELLER_ACCEPTED, "robot")
        assert "actor" in exc.value.messages

    def test_failed_transition_leaves_no_trace(self):
        order = _order_at_state(OrderStatus.READY)
        before = len(order.history)
        with pytest.raises(InvalidTransition):
            order.transition_to(OrderStatus.DELIVERED, Actor.DELIVERY)
        assert len(order.history) == before
        assert order._events == []


# ---------------------------------------------------------------
# Idempotency
# ---------------------------------------------------------------
class TestIdempotentReplay:
    def test_same_transition_same_actor_is_noop(self):
        order = _order_at_state(OrderStatus.SELLER_ACCEPTED)
        entries = len(order.history)
        assert order.accept() is False
        assert len(order.history) == entries
        assert order._events == []

    def test_replay_of_terminal_transition_is_noop(self):
        order = _order_at_state(OrderStatus.DELIVERED)
        assert order.transition_to(OrderStatus.DELIVERED, Actor.DELIVERY) is False

    def test_same_status_different_actor_is_rejected(self):
        order = _order_at_state(OrderStatus.SELLER_ACCEPTED)
        with pytest.raises(InvalidTransition):
            order.transition_to(OrderStatus.SELLER_ACCEPTED, Actor.SYSTEM)


# ---------------------------------------------------------------
# Timeline
# ---------------------------------------------------------------
class TestTimeline:
    def test_initial_entry_is_system_pending(self):
        order = _make_order()
        assert len(order.history) == 1
        entry = order.latest_entry
        assert entry.status == "pending_seller"
        assert entry.actor == "system"
        assert entry.sequence == 1

    def test_sequences_are_contiguous(self):
        order = _order_at_state(OrderStatus.DELIVERED)
        assert [e.sequence for e in order.history] == list(range(1, 7))

    def test_timestamps_never_decrease(self):
        order = _order_at_state(OrderStatus.PENDING_SELLER)
        # An entry written by a server whose clock ran ahead
        order.latest_entry.timestamp = datetime.now(UTC) + timedelta(minutes=5)
        order.accept()
        history = order.history
        assert history[-1].timestamp >= history[-2].timestamp

    def test_default_messages(self):
        order = _order_at_state(OrderStatus.PENDING_SELLER)
        order.accept()
        assert order.latest_entry.message == "Restaurant confirmed your order"

    def test_note_overrides_message(self):
        order = _order_at_state(OrderStatus.SELLER_ACCEPTED)
        order.transition_to(OrderStatus.PREPARING, Actor.SELLER, "Tandoor is hot")
        assert order.latest_entry.message == "Tandoor is hot"


# ---------------------------------------------------------------
# Events
# ---------------------------------------------------------------
class TestStatusChangedEvent:
    def test_transition_raises_event(self):
        order = _order_at_state(OrderStatus.PENDING_SELLER)
        order.accept()
        assert len(order._events) == 1
        event = order._events[0]
        assert isinstance(event, OrderStatusChanged)
        assert event.previous_status == "pending_seller"
        assert event.order_status == "seller_accepted"
        assert event.actor == "seller"
        assert event.sequence == 2
        assert event.order_id == order.order_id
        assert event.customer_email == "ravi@example.com"

    def test_cancellation_event_carries_reason(self):
        order = _order_at_state(OrderStatus.PREPARING)
        order.cancel("ordered twice")
        event = order._events[-1]
        assert event.cancellation_reason == "ordered twice"
        assert event.cancelled_by == "customer"
