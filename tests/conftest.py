# tests/conftest.py

from __future__ import annotations

import pytest

from app import create_app
from config import TestingConfig
from models import db

DEFAULT_PASSWORD = "longpw123"


@pytest.fixture()
def app():
    """
    Fresh app per test.

    TestingConfig uses an in-memory SQLite database, so every app instance
    starts with empty tables.
    """
    app = create_app(TestingConfig)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


def register(client, name="Ann", email="ann@x.com", password=DEFAULT_PASSWORD):
    return client.post("/auth/register", json={"name": name, "email": email, "password": password})


def login(client, email="ann@x.com", password=DEFAULT_PASSWORD):
    return client.post("/auth/login", json={"email": email, "password": password})


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def make_user(client):
    """
    Register + log in a user and return (user_id, auth headers).
    """

    def _make(name="Ann", email="ann@x.com", password=DEFAULT_PASSWORD):
        assert register(client, name, email, password).status_code == 201
        res = login(client, email, password)
        assert res.status_code == 200
        body = res.get_json()
        return body["userId"], bearer(body["accessToken"])

    return _make


@pytest.fixture()
def auth_headers(make_user) -> dict:
    _, headers = make_user()
    return headers
