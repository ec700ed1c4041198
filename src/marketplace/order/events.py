"""Order domain events — immutable facts about order lifecycle changes.

Events carry a snapshot of everything the notification fan-out needs
(contact details, item, totals) so listeners never reload the order.
"""

from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from marketplace.domain import marketplace


@marketplace.event(part_of="Order")
class OrderPlaced:
    """A verified payment (or COD request) produced a new order awaiting the seller."""

    __version__ = 1

    order_id = String(required=True)
    order_ref = Identifier(required=True)
    customer_id = Identifier(required=True)
    seller_id = Identifier(required=True)
    customer_name = String()
    customer_email = String()
    customer_phone = String()
    item_name = String()
    restaurant = String()
    quantity = Integer()
    total_amount = Float(required=True)
    payment_method = String(required=True)
    payment_status = String(required=True)
    order_status = String(required=True)
    estimated_delivery = String()
    delivery_address = Text()
    message = String()
    placed_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class OrderStatusChanged:
    """The order moved to a new lifecycle state and a timeline entry was appended."""

    __version__ = 1

    order_id = String(required=True)
    order_ref = Identifier(required=True)
    customer_id = Identifier(required=True)
    seller_id = Identifier(required=True)
    customer_name = String()
    customer_email = String()
    customer_phone = String()
    item_name = String()
    restaurant = String()
    quantity = Integer()
    total_amount = Float(required=True)
    payment_method = String()
    previous_status = String(required=True)
    order_status = String(required=True)
    actor = String(required=True)
    message = String()
    sequence = Integer(required=True)
    cancellation_reason = String()
    cancelled_by = String()
    estimated_delivery = String()
    changed_at = DateTime(required=True)
