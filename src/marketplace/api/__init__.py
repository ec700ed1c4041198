"""Marketplace API package."""

from fastapi import FastAPI, Request

from marketplace.api.errors import install_error_handlers
from marketplace.api.live import get_hub, live_router
from marketplace.api.routes import notification_router, order_router, payment_router, settlement_router
from marketplace.domain import marketplace

ROUTERS = [order_router, payment_router, settlement_router, notification_router, live_router]


def bind_domain_context(app: FastAPI) -> None:
    """Push the marketplace domain context around every HTTP request."""

    @app.middleware("http")
    async def domain_context_middleware(request: Request, call_next):
        with marketplace.domain_context():
            return await call_next(request)


__all__ = [
    "ROUTERS",
    "bind_domain_context",
    "get_hub",
    "install_error_handlers",
    "live_router",
    "notification_router",
    "order_router",
    "payment_router",
    "settlement_router",
]
