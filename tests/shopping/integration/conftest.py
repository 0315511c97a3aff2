import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from shopping.api.errors import install_error_handlers
from shopping.api.routes import admin_router, cart_router


@pytest.fixture()
def client():
    app = FastAPI()
    app.include_router(cart_router)
    app.include_router(admin_router)
    install_error_handlers(app)
    return TestClient(app)
