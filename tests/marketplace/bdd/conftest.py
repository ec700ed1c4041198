"""Shared BDD fixtures and step definitions for the order lifecycle."""

import pytest
from pytest_bdd import given, parsers, then

from marketplace.errors import InvalidTransition
from marketplace.notification.channel import LIVE, get_channel
from marketplace.notification.fanout import seller_room, user_room
from marketplace.order.order import OrderStatus
from marketplace.order.queries import find_order
from marketplace.order.transition import accept_order


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def error():
    """Container for a refused transition."""
    return {"exc": None}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(
    parsers.cfparse('a customer paid online for an order of {total:f} from seller "{seller_id}"'),
    target_fixture="order_id",
)
def paid_online_order(place_online_order, total, seller_id):
    return place_online_order(total_amount=total, seller_id=seller_id).order_id


@given(
    parsers.cfparse("a customer chose cash on delivery for an order of {total:f}"),
    target_fixture="order_id",
)
def cash_on_delivery_order(place_cod_order, total):
    return place_cod_order(total_amount=total).order_id


@given("the seller has accepted the order")
def seller_has_accepted(order_id):
    accept_order(order_id)


@given("the order is out for delivery")
def order_out_for_delivery(order_id, advance):
    advance(order_id, OrderStatus.OUT_FOR_DELIVERY)


# ---------------------------------------------------------------------------
# Then steps (shared)
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order status is "{status}"'))
def order_status_is(order_id, status):
    assert find_order(order_id).order_status == status


@then(parsers.cfparse('the payment status is "{status}"'))
def payment_status_is(order_id, status):
    assert find_order(order_id).payment_status == status


@then(parsers.cfparse("the timeline has {count:d} entries"))
def timeline_has_entries(order_id, count):
    assert len(find_order(order_id).history) == count


@then("the transition is refused")
def transition_refused(error):
    assert error["exc"] is not None, "Expected the transition to be refused"
    assert isinstance(error["exc"], InvalidTransition)


@then(parsers.cfparse('the customer was sent an "{event}" live update'))
def customer_live_update(order_id, event, wait_for_notifications):
    wait_for_notifications()
    order = find_order(order_id)
    rooms = {b["room"] for b in get_channel(LIVE).events(event)}
    assert user_room(str(order.customer_id)) in rooms


@then(parsers.cfparse('the seller was sent a "{event}" live update'))
def seller_live_update(order_id, event, wait_for_notifications):
    wait_for_notifications()
    order = find_order(order_id)
    rooms = {b["room"] for b in get_channel(LIVE).events(event)}
    assert seller_room(str(order.seller_id)) in rooms
