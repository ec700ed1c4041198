"""Template registry — maps an order status to what customers are told about it.

One fixed mapping feeds every channel: the short ``message`` goes to live
socket clients, the ``title`` becomes the email subject, and ``body`` is the
longer text used for email and WhatsApp.
"""

from dataclasses import dataclass

from marketplace.notification.notice import StatusNotice


@dataclass(frozen=True)
class StatusTemplate:
    title: str
    message: str
    body: str


@dataclass(frozen=True)
class RenderedNotice:
    title: str
    message: str
    body: str


TEMPLATE_REGISTRY: dict[str, StatusTemplate] = {
    "pending_seller": StatusTemplate(
        title="Order #{order_id} received",
        message="Waiting for restaurant confirmation",
        body="Thanks {customer_name}! Your order #{order_id} for {item_name} has been placed. "
        "Total: Rs. {total_amount:.2f}. We'll let you know as soon as {restaurant} confirms it.",
    ),
    "seller_accepted": StatusTemplate(
        title="Restaurant accepted your order!",
        message="Restaurant accepted your order",
        body="Your order #{order_id} has been confirmed by {restaurant}. "
        "Estimated delivery: {estimated_delivery}.",
    ),
    "preparing": StatusTemplate(
        title="Your food is being prepared",
        message="The restaurant is preparing your food",
        body="The restaurant is cooking your order #{order_id}.",
    ),
    "ready": StatusTemplate(
        title="Order ready for pickup!",
        message="Your order is ready for pickup",
        body="Your order #{order_id} is ready and waiting for delivery.",
    ),
    "out_for_delivery": StatusTemplate(
        title="Order is on the way!",
        message="Your order is on its way",
        body="Your order #{order_id} is out for delivery. Track it live!",
    ),
    "delivered": StatusTemplate(
        title="Order delivered successfully!",
        message="Your order has been delivered",
        body="Enjoy your meal! Rate your order #{order_id}.",
    ),
    "seller_rejected": StatusTemplate(
        title="Order declined",
        message="Restaurant declined your order",
        body="Sorry, the restaurant declined order #{order_id}. Reason: {reason}. Full refund initiated.",
    ),
    "cancelled": StatusTemplate(
        title="Order cancelled",
        message="Your order has been cancelled",
        body="Order #{order_id} has been cancelled. Reason: {reason}. Any payment will be refunded.",
    ),
}

# Extra live event emitted to the customer's rooms alongside "order-status-updated"
STATUS_EVENTS = {
    "seller_accepted": "order-accepted",
    "seller_rejected": "order-rejected",
    "cancelled": "order-cancelled",
}


def get_template(status: str) -> StatusTemplate:
    """Look up the template for an order status string."""
    template = TEMPLATE_REGISTRY.get(status)
    if template is None:
        raise ValueError(f"No template registered for order status: {status}")
    return template


def render(notice: StatusNotice) -> RenderedNotice:
    template = get_template(notice.status)
    context = {
        "order_id": notice.order_id,
        "customer_name": notice.customer_name or "there",
        "item_name": notice.item_name or "your food",
        "restaurant": notice.restaurant or "the restaurant",
        "total_amount": notice.total_amount or 0.0,
        "estimated_delivery": notice.estimated_delivery or "25-30 minutes",
        "reason": notice.cancellation_reason or notice.note or "not specified",
    }
    return RenderedNotice(
        title=template.title.format(**context),
        message=template.message.format(**context),
        body=template.body.format(**context),
    )
