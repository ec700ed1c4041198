"""Read helpers over the Order repository.

Lookups by the human readable ``order_id`` and by gateway payment id, plus a
paginated scan used by settlement and background jobs. Reads never take the
per-order lock.
"""

from collections.abc import Iterator

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from marketplace.order.order import Order

PAGE_SIZE = 100


def find_order(order_id: str) -> Order:
    """Load an order by its public ``ORD…`` id (or, failing that, its internal id)."""
    repo = current_domain.repository_for(Order)
    results = repo._dao.query.filter(order_id=order_id).all()
    if results and results.items:
        return results.first

    try:
        return repo.get(order_id)
    except ObjectNotFoundError:
        raise ObjectNotFoundError(f"Order {order_id} does not exist") from None


def find_by_payment_reference(gateway_payment_id: str) -> Order | None:
    """Return the order created from this gateway payment, if any."""
    repo = current_domain.repository_for(Order)
    results = repo._dao.query.filter(gateway_payment_id=gateway_payment_id).all()
    if results and results.items:
        return results.first
    return None


def iter_orders(page_size: int = PAGE_SIZE, **filters) -> Iterator[Order]:
    """Yield every order matching ``filters``, fetching ``page_size`` rows at a time."""
    repo = current_domain.repository_for(Order)
    offset = 0
    while True:
        query = repo._dao.query.filter(**filters) if filters else repo._dao.query
        page = query.order_by("created_at").offset(offset).limit(page_size).all()
        items = page.items if page else []
        yield from items
        if len(items) < page_size:
            return
        offset += page_size


def orders_for_seller(seller_id: str) -> list[Order]:
    return list(iter_orders(seller_id=seller_id))


def orders_in_status(status: str) -> list[Order]:
    return list(iter_orders(order_status=status))
