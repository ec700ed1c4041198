"""Tests for the Order repository's guard on placement fields."""

import pytest
from protean import current_domain
from protean.exceptions import ValidationError

from marketplace.order.order import Order
from marketplace.order.queries import find_order


@pytest.fixture()
def repo():
    return current_domain.repository_for(Order)


class TestPlacementFields:
    @pytest.mark.parametrize(
        "field, value",
        [
            ("total_amount", 1.0),
            ("seller_id", "seller-999"),
            ("customer_id", "cust-999"),
            ("payment_method", "cod"),
        ],
    )
    def test_cannot_be_rewritten(self, repo, place_online_order, field, value):
        placed = place_online_order()
        order = find_order(placed.order_id)
        setattr(order, field, value)

        with pytest.raises(ValidationError) as exc:
            repo.add(order)

        assert field in exc.value.messages
        assert getattr(find_order(placed.order_id), field) == getattr(placed, field)

    def test_other_fields_still_update(self, repo, place_online_order):
        placed = place_online_order()
        order = find_order(placed.order_id)
        order.delivery_address = "7 Brigade Road, Bengaluru"
        repo.add(order)

        assert find_order(placed.order_id).delivery_address == "7 Brigade Road, Bengaluru"
