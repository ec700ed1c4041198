"""Marketplace bounded context: food orders between customers, sellers and the payment gateway.

Owns the order lifecycle (state machine and audit timeline), the payment
verification that turns a gateway proof into an order, the best-effort
notification fan-out to customers and sellers, and the seller settlements
derived from completed orders.

Uses CQRS (not event sourcing): the order row and its timeline are the source
of truth, and domain events only drive side effects such as notifications.
"""

from protean.domain import Domain

marketplace = Domain(name="marketplace")
