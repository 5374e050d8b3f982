import os
import sys
from typing import Any, Callable, List, Optional

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from kesimarket.app.config import TestConfig
from kesimarket.app.extensions import API_EXTENSION_KEY, db
from kesimarket.app.factory import create_app
from fakes import FakeApi, cart_payload, user_payload


@pytest.fixture()
def app():
    app = create_app(TestConfig)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def fake_api(app) -> FakeApi:
    fake = FakeApi()
    app.extensions[API_EXTENSION_KEY].session = fake
    return fake


@pytest.fixture()
def client(app, fake_api):
    with app.test_client() as client:
        yield client


@pytest.fixture()
def login_as(client, fake_api) -> Callable[..., Any]:
    """Log in through the real /login form against the fake API."""

    def _login(role: str = "customer", user_id: int = 7, cart: Optional[List[tuple]] = None):
        fake_api.on("POST", "/opened/auth/login", {"data": {"user": user_payload(user_id, role), "token": "tok-123"}})
        fake_api.on("GET", "/secured/cart", cart_payload(cart or []))
        fake_api.on("POST", "/secured/cart/merge", lambda body, params: cart_payload([]))
        return client.post("/login", data={"email": "jane@example.com", "password": "secret123"})

    return _login
