"""Repository for the Order aggregate."""

from protean.core.repository import BaseRepository
from protean.exceptions import ObjectNotFoundError, ValidationError

from marketplace.domain import marketplace
from marketplace.order.order import Order

# Fixed when the order is placed; settlement and the audit trail rely on them.
PLACEMENT_FIELDS = ("order_id", "customer_id", "seller_id", "total_amount", "payment_method")


@marketplace.repository(part_of=Order)
class OrderRepository(BaseRepository):
    """Order repository that refuses to rewrite what was agreed at checkout."""

    def add(self, order: Order) -> Order:
        if order.state_.is_persisted:
            self._assert_placement_unchanged(order)
        return super().add(order)

    def _assert_placement_unchanged(self, order: Order) -> None:
        try:
            stored = self._dao.get(order.id)
        except ObjectNotFoundError:
            return

        errors = {
            name: [f"{name} cannot change after the order is placed"]
            for name in PLACEMENT_FIELDS
            if str(getattr(stored, name)) != str(getattr(order, name))
        }
        if errors:
            raise ValidationError(errors)
