"""Order transitions — command, handler and the locked entry point.

Every status change (seller decisions, kitchen progress, courier updates,
customer cancellations) goes through ``transition_order``, which serializes
writers per order and then processes a TransitionOrder command inside one
unit of work. Notifications are scheduled by the OrderStatusChanged event
handler after the write commits; they are never awaited here.
"""

import structlog
from protean import handle
from protean.fields import String
from protean.utils.globals import current_domain

from marketplace.config import get_settings
from marketplace.domain import marketplace
from marketplace.order.locks import order_lock_key, order_locks
from marketplace.order.order import Actor, Order, OrderStatus
from marketplace.order.queries import find_order

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="Order")
class TransitionOrder:
    """Move an order to a new status on behalf of an actor."""

    order_id = String(required=True, max_length=40)
    target_status = String(required=True, max_length=30)
    actor = String(required=True, max_length=20)
    note = String(max_length=500)


@marketplace.command_handler(part_of=Order)
class TransitionOrderHandler:
    @handle(TransitionOrder)
    def transition(self, command):
        repo = current_domain.repository_for(Order)
        order = find_order(command.order_id)
        previous = order.order_status

        changed = order.transition_to(command.target_status, command.actor, command.note)
        if not changed:
            logger.info(
                "Duplicate transition ignored",
                order_id=order.order_id,
                order_status=order.order_status,
                actor=command.actor,
            )
            return order

        repo.add(order)
        logger.info(
            "Order transitioned",
            order_id=order.order_id,
            from_status=previous,
            to_status=order.order_status,
            actor=command.actor,
        )
        return order


def transition_order(order_id: str, target_status, actor, note: str | None = None) -> Order:
    """Apply a status change under the order's lock and return the updated order.

    Raises InvalidTransition for illegal moves, ObjectNotFoundError for an
    unknown order and OrderBusy when another writer holds the order too long.
    """
    timeout = get_settings().ORDER_LOCK_TIMEOUT_SECONDS
    # Resolve either id form to the one internal id so every writer shares a lock;
    # the handler reloads the order once the lock is held.
    order = find_order(order_id)
    with order_locks.hold(order_lock_key(order), timeout):
        return current_domain.process(
            TransitionOrder(
                order_id=str(order.id),
                target_status=target_status.value if isinstance(target_status, OrderStatus) else str(target_status),
                actor=actor.value if isinstance(actor, Actor) else str(actor),
                note=note,
            ),
            asynchronous=False,
        )


def accept_order(order_id: str) -> Order:
    return transition_order(order_id, OrderStatus.SELLER_ACCEPTED, Actor.SELLER)


def reject_order(order_id: str, reason: str) -> Order:
    return transition_order(order_id, OrderStatus.SELLER_REJECTED, Actor.SELLER, reason)


def cancel_order(order_id: str, reason: str, actor=Actor.CUSTOMER) -> Order:
    return transition_order(order_id, OrderStatus.CANCELLED, actor, reason)
