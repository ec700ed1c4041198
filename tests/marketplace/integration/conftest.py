import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from marketplace.api import ROUTERS, bind_domain_context, install_error_handlers


@pytest.fixture()
def client():
    app = FastAPI()
    bind_domain_context(app)
    install_error_handlers(app)
    for router in ROUTERS:
        app.include_router(router)
    return TestClient(app)


@pytest.fixture()
def draft_payload(make_draft):
    def _payload(**overrides) -> dict:
        draft = make_draft(**overrides)
        return {key: value for key, value in draft.items() if value is not None}

    return _payload
