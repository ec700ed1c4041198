"""Order event handler — hands committed order changes to the notification dispatcher.

Runs after the order write commits. It only snapshots the event and queues it;
delivery happens on the dispatcher's workers, and nothing that goes wrong here
may propagate back into the transition that raised the event.
"""

import structlog
from protean.utils.mixins import handle

from marketplace.domain import marketplace
from marketplace.notification.dispatcher import get_dispatcher
from marketplace.notification.notice import StatusNotice
from marketplace.order.events import OrderPlaced, OrderStatusChanged
from marketplace.order.order import Order

logger = structlog.get_logger(__name__)


@marketplace.event_handler(part_of=Order)
class OrderNotificationHandler:
    """Schedules customer and seller notifications for order lifecycle events."""

    @handle(OrderPlaced)
    def on_order_placed(self, event: OrderPlaced) -> None:
        self._schedule(StatusNotice.from_placed, event)

    @handle(OrderStatusChanged)
    def on_order_status_changed(self, event: OrderStatusChanged) -> None:
        self._schedule(StatusNotice.from_status_change, event)

    def _schedule(self, build, event) -> None:
        try:
            get_dispatcher().submit(build(event))
        except Exception:
            logger.exception(
                "Failed to schedule order notifications",
                order_id=event.order_id,
                order_status=event.order_status,
            )
