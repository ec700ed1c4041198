"""TasteSphere order lifecycle API.

Serves order transitions, payment verification, settlement reads and the
live WebSocket channel. Commands are processed synchronously; notifications
are delivered by the background dispatcher after each write commits. The
scheduled jobs run here too (SCHEDULER_ENABLED), so their live broadcasts
reach the clients connected to this process.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Logging and domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV selects the config overlay from marketplace/domain.toml.
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from marketplace.api import ROUTERS, bind_domain_context, get_hub, install_error_handlers
from marketplace.config import get_settings
from marketplace.domain import marketplace
from marketplace.notification.dispatcher import reset_dispatcher
from marketplace.scheduling.scheduler import start_scheduler
from marketplace.utils.logging import configure_logging

configure_logging()
marketplace.init()

logger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI):
    get_hub()
    # Jobs broadcast through the hub installed above
    scheduler = start_scheduler()
    logger.info("TasteSphere API started", environment=get_settings().ENVIRONMENT)
    yield
    if scheduler is not None:
        scheduler.shutdown(wait=False)
    # Queued notices are delivered before the process exits.
    reset_dispatcher(wait=True)
    logger.info("TasteSphere API stopped")


app = FastAPI(
    lifespan=lifespan,
    title="TasteSphere Orders API",
    description="Order lifecycle, payment verification, notifications and seller settlements",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------------------------------------------------------------------
# Routers, middleware and error handlers
# ---------------------------------------------------------------------------
bind_domain_context(app)
install_error_handlers(app)
for router in ROUTERS:
    app.include_router(router)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(
        content={
            "status": "ok",
            "domain": marketplace.name,
            "environment": get_settings().ENVIRONMENT,
        }
    )
