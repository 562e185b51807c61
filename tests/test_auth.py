# tests/test_auth.py

from __future__ import annotations

from datetime import timedelta

import pytest
from flask_jwt_extended import create_access_token, decode_token

from models import User

from .conftest import DEFAULT_PASSWORD, bearer, login, register

# valid address format, but longer than the 255-character column
LONG_EMAIL = "a" * 64 + "@" + ("b" * 60 + ".") * 5 + "com"

UNAUTHORIZED_BODY = {"error": "unauthorized", "message": "Unauthorized", "status": 401}


# ─── POST /auth/register ──────────────────────────────────────────────────────


def test_register_creates_user(client, app):
    res = register(client)

    assert res.status_code == 201
    body = res.get_json()
    assert body["message"] == "Registration successful"
    assert body["name"] == "Ann"
    assert body["userId"]

    with app.app_context():
        user = User.query.filter_by(email="ann@x.com").one()
        assert user.id == body["userId"]
        # stored as a bcrypt hash, never the raw password
        assert user.password_hash != DEFAULT_PASSWORD
        assert user.password_hash.startswith("$2")


def test_register_never_returns_password_hash(client):
    body = register(client).get_json()
    assert "password" not in body
    assert "passwordHash" not in body


def test_duplicate_email_conflicts_and_first_account_still_works(client, app):
    assert register(client).status_code == 201

    res = register(client, name="Other Ann", password="different-pw")
    assert res.status_code == 409
    assert res.get_json()["error"] == "conflict"

    with app.app_context():
        assert User.query.filter_by(email="ann@x.com").count() == 1

    assert login(client).status_code == 200


@pytest.mark.parametrize(
    "payload, field",
    [
        ({"email": "ann@x.com", "password": DEFAULT_PASSWORD}, "name"),
        ({"name": "Ann", "password": DEFAULT_PASSWORD}, "email"),
        ({"name": "Ann", "email": "ann@x.com"}, "password"),
        ({"name": "", "email": "ann@x.com", "password": DEFAULT_PASSWORD}, "name"),
        ({"name": "A" * 101, "email": "ann@x.com", "password": DEFAULT_PASSWORD}, "name"),
        ({"name": "Ann", "email": "not-an-email", "password": DEFAULT_PASSWORD}, "email"),
        ({"name": "Ann", "email": LONG_EMAIL, "password": DEFAULT_PASSWORD}, "email"),
        ({"name": "Ann", "email": "ann@x.com", "password": "short"}, "password"),
        ({"name": "Ann", "email": "ann@x.com", "password": DEFAULT_PASSWORD, "role": "admin"}, "role"),
    ],
)
def test_register_validation_errors(client, payload, field):
    res = client.post("/auth/register", json=payload)

    assert res.status_code == 400
    body = res.get_json()
    assert body["error"] == "validation_failed"
    assert field in body["details"]


def test_register_rejects_non_json_body(client):
    res = client.post("/auth/register", data="name=Ann", content_type="text/plain")

    assert res.status_code == 400
    assert res.get_json()["error"] == "validation_failed"


def test_register_accepts_password_longer_than_bcrypt_limit(client):
    long_password = "p" * 100
    assert register(client, password=long_password).status_code == 201
    assert login(client, password=long_password).status_code == 200
    assert login(client, password="p" * 99).status_code == 401


# ─── POST /auth/login ─────────────────────────────────────────────────────────


def test_login_returns_token_and_profile(client, app):
    user_id = register(client).get_json()["userId"]

    res = login(client)

    assert res.status_code == 200
    body = res.get_json()
    assert body["userId"] == user_id
    assert body["email"] == "ann@x.com"
    assert body["name"] == "Ann"

    with app.app_context():
        claims = decode_token(body["accessToken"])
    assert claims["sub"] == user_id
    assert claims["email"] == "ann@x.com"
    assert "exp" in claims


@pytest.mark.parametrize("password", ["longpw1234", "LONGPW123", "", "longpw12"])
def test_login_only_accepts_the_registered_password(client, password):
    register(client)

    res = login(client, password=password)

    assert res.status_code == 401
    assert res.get_json()["message"] == "Invalid credentials"


def test_unknown_email_and_wrong_password_are_indistinguishable(client):
    register(client)

    unknown = login(client, email="nobody@x.com")
    wrong = login(client, password="wrong-password")

    assert unknown.status_code == wrong.status_code == 401
    assert unknown.get_json() == wrong.get_json()


@pytest.mark.parametrize(
    "payload",
    [
        {"password": DEFAULT_PASSWORD},
        {"email": "ann@x.com"},
        {"email": "ann@x.com", "password": DEFAULT_PASSWORD, "remember": True},
    ],
)
def test_login_validation_errors(client, payload):
    assert client.post("/auth/login", json=payload).status_code == 400


# ─── POST /auth/logout ────────────────────────────────────────────────────────


def test_logout_with_valid_token(client, auth_headers):
    res = client.post("/auth/logout", headers=auth_headers)

    assert res.status_code == 200
    assert res.get_json()["message"] == "Logged out successfully"


def test_logout_is_stateless(client, auth_headers):
    client.post("/auth/logout", headers=auth_headers)

    # no server-side revocation: the client is responsible for dropping the token
    assert client.get("/tasks", headers=auth_headers).status_code == 200


def test_logout_without_token(client):
    res = client.post("/auth/logout")

    assert res.status_code == 401
    assert res.get_json() == UNAUTHORIZED_BODY


@pytest.mark.parametrize(
    "header",
    [
        "Bearer not.a.real.token",
        "Bearer garbage",
        "Token abc.def.ghi",
        "Bearer",
    ],
)
def test_logout_with_malformed_token(client, header):
    res = client.post("/auth/logout", headers={"Authorization": header})
    assert res.status_code == 401


def test_expired_token_is_rejected(client, app):
    user_id = register(client).get_json()["userId"]
    with app.app_context():
        token = create_access_token(
            identity=user_id,
            additional_claims={"email": "ann@x.com"},
            expires_delta=timedelta(seconds=-10),
        )

    res = client.post("/auth/logout", headers=bearer(token))

    assert res.status_code == 401
    assert res.get_json() == UNAUTHORIZED_BODY


def test_token_without_email_claim_is_rejected(client, app):
    with app.app_context():
        token = create_access_token(identity="some-user-id")

    res = client.get("/tasks", headers=bearer(token))

    assert res.status_code == 401
    assert res.get_json() == UNAUTHORIZED_BODY


def test_token_signed_with_another_secret_is_rejected(client, app):
    user_id = register(client).get_json()["userId"]
    server_secret = app.config["JWT_SECRET_KEY"]
    with app.app_context():
        app.config["JWT_SECRET_KEY"] = "some-other-secret-key-of-sufficient-length"
        token = create_access_token(identity=user_id, additional_claims={"email": "ann@x.com"})
    app.config["JWT_SECRET_KEY"] = server_secret

    res = client.get("/tasks", headers=bearer(token))

    assert res.status_code == 401
    assert res.get_json() == UNAUTHORIZED_BODY


def test_guard_failures_share_one_response_body(client, app):
    user_id = register(client).get_json()["userId"]
    with app.app_context():
        expired = create_access_token(
            identity=user_id,
            additional_claims={"email": "ann@x.com"},
            expires_delta=timedelta(seconds=-10),
        )
        no_email = create_access_token(identity=user_id)

    responses = [
        client.get("/tasks"),
        client.get("/tasks", headers={"Authorization": "Bearer abc.def.ghi"}),
        client.get("/tasks", headers={"Authorization": "Token abc.def.ghi"}),
        client.get("/tasks", headers=bearer(expired)),
        client.get("/tasks", headers=bearer(no_email)),
    ]

    assert [res.status_code for res in responses] == [401] * 5
    assert all(res.get_json() == UNAUTHORIZED_BODY for res in responses)


def test_register_long_email_never_reaches_database(client, app):
    res = register(client, email=LONG_EMAIL)

    assert res.status_code == 400
    assert "email" in res.get_json()["details"]
    with app.app_context():
        assert User.query.count() == 0


# ─── password hashing setup ───────────────────────────────────────────────────


def test_dummy_hash_is_ready_before_first_login(app):
    dummy = app.extensions["dummy_password_hash"]
    assert dummy.startswith("$2")


def test_unknown_email_login_does_not_hash_anything(client, app, monkeypatch):
    bcrypt = app.extensions["bcrypt"]

    def no_hashing(*args, **kwargs):
        raise AssertionError("login must not generate a password hash")

    monkeypatch.setattr(bcrypt, "generate_password_hash", no_hashing)

    res = login(client, email="nobody@x.com")

    assert res.status_code == 401
    assert res.get_json()["message"] == "Invalid credentials"
