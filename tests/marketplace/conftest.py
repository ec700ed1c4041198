"""Shared fixtures for marketplace tests: order drafts, placed orders and the fake channels."""

import pytest
from protean import current_domain

from marketplace.notification.channel import EMAIL, LIVE, WHATSAPP, get_channel
from marketplace.notification.dispatcher import get_dispatcher
from marketplace.order.order import Actor, Order, OrderStatus
from marketplace.order.queries import find_order
from marketplace.order.transition import transition_order
from marketplace.payment.verification import verify_and_place_order
from marketplace.payment.verifier.hmac_adapter import sign
from marketplace.payment.verifier.port import PaymentProof

DELIVERY_PATH = [
    (OrderStatus.SELLER_ACCEPTED, Actor.SELLER),
    (OrderStatus.PREPARING, Actor.SELLER),
    (OrderStatus.READY, Actor.SELLER),
    (OrderStatus.OUT_FOR_DELIVERY, Actor.DELIVERY),
    (OrderStatus.DELIVERED, Actor.DELIVERY),
]


@pytest.fixture()
def make_draft():
    def _make(**overrides) -> dict:
        draft = {
            "customer_id": "cust-001",
            "seller_id": "seller-001",
            "customer_name": "Asha Rao",
            "customer_email": "asha@example.com",
            "customer_phone": "9876543210",
            "delivery_address": "12 MG Road, Bengaluru",
            "item": {"name": "Paneer Tikka", "price": 250.0, "quantity": 2, "restaurant": "Spice Hub"},
            "breakdown": {"item_price": 500.0, "delivery_fee": 30.0, "platform_fee": 5.0, "tax": 25.0},
            "total_amount": 560.0,
        }
        draft.update(overrides)
        return draft

    return _make


@pytest.fixture()
def signed_proof():
    def _proof(gateway_order_id: str = "order_G1", gateway_payment_id: str = "pay_P1", secret: str = "changethis"):
        return PaymentProof(
            gateway_order_id=gateway_order_id,
            gateway_payment_id=gateway_payment_id,
            signature=sign(gateway_order_id, gateway_payment_id, secret),
        )

    return _proof


@pytest.fixture()
def place_cod_order(make_draft):
    def _place(**overrides) -> Order:
        return verify_and_place_order("cod", make_draft(**overrides))

    return _place


@pytest.fixture()
def place_online_order(make_draft, signed_proof):
    def _place(payment_id: str = "pay_P1", **overrides) -> Order:
        return verify_and_place_order("razorpay", make_draft(**overrides), signed_proof(gateway_payment_id=payment_id))

    return _place


@pytest.fixture()
def advance():
    """Walk an order along the happy path until it reaches ``until``."""

    def _advance(order_id: str, until: OrderStatus) -> Order:
        order = find_order(order_id)
        for status, actor in DELIVERY_PATH:
            order = transition_order(order_id, status, actor)
            if status == until:
                break
        return order

    return _advance


@pytest.fixture()
def backdate():
    def _backdate(order_id: str, created_at) -> Order:
        repo = current_domain.repository_for(Order)
        order = find_order(order_id)
        order.created_at = created_at
        repo.add(order)
        return find_order(order_id)

    return _backdate


@pytest.fixture()
def live_bus():
    return get_channel(LIVE)


@pytest.fixture()
def email_adapter():
    return get_channel(EMAIL)


@pytest.fixture()
def whatsapp_adapter():
    return get_channel(WHATSAPP)


@pytest.fixture()
def wait_for_notifications():
    """Block until every queued notice has been delivered."""

    def _wait(timeout: float = 5.0) -> None:
        assert get_dispatcher().wait_idle(timeout), "notifications did not drain in time"

    return _wait
