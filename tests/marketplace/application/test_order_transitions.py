"""Application tests for transition_order and the seller/customer shortcuts."""

import threading
import time

import pytest
from protean.exceptions import ObjectNotFoundError

from marketplace.config import Settings, set_settings
from marketplace.domain import marketplace
from marketplace.errors import InvalidTransition, OrderBusy
from marketplace.order import transition as transition_module
from marketplace.order.locks import order_lock_key, order_locks
from marketplace.order.order import Actor, OrderStatus
from marketplace.order.queries import find_order
from marketplace.order.transition import accept_order, cancel_order, reject_order, transition_order


class TestTransitionOrder:
    def test_accept_is_persisted(self, place_online_order):
        order = place_online_order()
        accept_order(order.order_id)

        stored = find_order(order.order_id)
        assert stored.order_status == "seller_accepted"
        assert [(e.status, e.actor) for e in stored.history] == [
            ("pending_seller", "system"),
            ("seller_accepted", "seller"),
        ]

    def test_lookup_by_internal_id(self, place_online_order):
        order = place_online_order()
        updated = transition_order(str(order.id), OrderStatus.SELLER_ACCEPTED, Actor.SELLER)
        assert updated.order_id == order.order_id
        assert updated.order_status == "seller_accepted"

    def test_full_delivery(self, place_cod_order, advance):
        order = place_cod_order()
        advance(order.order_id, OrderStatus.DELIVERED)

        stored = find_order(order.order_id)
        assert stored.order_status == "delivered"
        assert stored.payment_status == "completed"
        assert stored.actual_delivery_time is not None
        assert [e.sequence for e in stored.history] == [1, 2, 3, 4, 5, 6]

    def test_duplicate_request_is_a_noop(self, place_online_order):
        order = place_online_order()
        accept_order(order.order_id)
        again = accept_order(order.order_id)

        assert again.order_status == "seller_accepted"
        assert len(find_order(order.order_id).history) == 2

    def test_reject_records_reason(self, place_online_order):
        order = place_online_order()
        reject_order(order.order_id, "out of stock")

        stored = find_order(order.order_id)
        assert stored.order_status == "seller_rejected"
        assert stored.cancellation_reason == "out of stock"
        assert stored.cancelled_by == "seller"

    def test_customer_cancels(self, place_online_order, advance):
        order = place_online_order()
        advance(order.order_id, OrderStatus.PREPARING)
        cancel_order(order.order_id, "ordered twice")

        stored = find_order(order.order_id)
        assert stored.order_status == "cancelled"
        assert stored.cancelled_by == "customer"
        assert stored.cancelled_at is not None

    def test_invalid_transition_leaves_order_untouched(self, place_online_order):
        order = place_online_order()
        accept_order(order.order_id)
        with pytest.raises(InvalidTransition):
            transition_order(order.order_id, OrderStatus.PENDING_SELLER, Actor.SELLER)

        stored = find_order(order.order_id)
        assert stored.order_status == "seller_accepted"
        assert len(stored.history) == 2

    def test_cannot_cancel_out_for_delivery(self, place_online_order, advance):
        order = place_online_order()
        advance(order.order_id, OrderStatus.OUT_FOR_DELIVERY)
        with pytest.raises(InvalidTransition):
            cancel_order(order.order_id, "too slow")

    def test_unknown_order(self):
        with pytest.raises(ObjectNotFoundError):
            accept_order("ORD00000000ZZ")

    def test_busy_order(self, place_online_order):
        set_settings(Settings(ORDER_LOCK_TIMEOUT_SECONDS=0.05))
        order = place_online_order()

        with order_locks.hold(order_lock_key(order), timeout=1):
            with pytest.raises(OrderBusy):
                accept_order(order.order_id)

        assert find_order(order.order_id).order_status == "pending_seller"

    def test_lock_is_shared_by_both_id_forms(self, place_online_order):
        set_settings(Settings(ORDER_LOCK_TIMEOUT_SECONDS=0.05))
        order = place_online_order()

        with order_locks.hold(order_lock_key(find_order(order.order_id)), timeout=1):
            with pytest.raises(OrderBusy):
                accept_order(str(order.id))

        assert find_order(order.order_id).order_status == "pending_seller"


class TestConcurrentTransitions:
    @pytest.fixture()
    def slow_lookup(self, monkeypatch):
        """Widen the window between resolving an order and writing it."""
        lookup = transition_module.find_order

        def _slow(order_id):
            time.sleep(0.2)
            return lookup(order_id)

        monkeypatch.setattr(transition_module, "find_order", _slow)

    def _race(self, *calls):
        barrier = threading.Barrier(len(calls))
        outcomes = {}

        def run(name, call):
            with marketplace.domain_context():
                barrier.wait()
                try:
                    outcomes[name] = call().order_status
                except (InvalidTransition, OrderBusy) as exc:
                    outcomes[name] = exc

        threads = [threading.Thread(target=run, args=(name, call)) for name, call in calls]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)
        return outcomes

    def test_accept_and_reject_through_different_ids(self, place_online_order, slow_lookup):
        order = place_online_order()

        outcomes = self._race(
            ("accept", lambda: accept_order(order.order_id)),
            ("reject", lambda: reject_order(str(order.id), "out of stock")),
        )

        winners = {name: status for name, status in outcomes.items() if isinstance(status, str)}
        losers = [exc for exc in outcomes.values() if not isinstance(exc, str)]
        assert len(winners) == 1
        assert len(losers) == 1

        [(winner, status)] = winners.items()
        stored = find_order(order.order_id)
        assert stored.order_status == status
        assert [entry.status for entry in stored.history] == ["pending_seller", status]
        assert status == ("seller_accepted" if winner == "accept" else "seller_rejected")

    def test_same_transition_twice_is_recorded_once(self, place_online_order, slow_lookup):
        order = place_online_order()

        outcomes = self._race(
            ("public", lambda: accept_order(order.order_id)),
            ("internal", lambda: accept_order(str(order.id))),
        )

        assert outcomes == {"public": "seller_accepted", "internal": "seller_accepted"}
        assert [entry.status for entry in find_order(order.order_id).history] == [
            "pending_seller",
            "seller_accepted",
        ]
