"""
Login, sessions and route protection.
"""

import pytest

from conftest import ADMIN_PHONE, PASSWORD, auth_headers
from phonepos.services import auth_service


def test_login_returns_token(client, admin_user):
    resp = client.post("/api/auth/login", json={"phone": ADMIN_PHONE, "password": PASSWORD})

    assert resp.status_code == 200
    assert resp.json["token"]
    assert resp.json["user"]["role"] == "ADMIN"
    assert resp.json["message"] == "Login successful"


def test_login_accepts_international_phone(client, admin_user):
    resp = client.post("/api/auth/login", json={"phone": "+959111111111", "password": PASSWORD})
    assert resp.status_code == 200


@pytest.mark.parametrize("body", [{}, {"phone": ADMIN_PHONE}, {"password": PASSWORD}])
def test_login_requires_both_fields(client, admin_user, body):
    assert client.post("/api/auth/login", json=body).status_code == 400


def test_wrong_password(client, admin_user):
    resp = client.post("/api/auth/login", json={"phone": ADMIN_PHONE, "password": "nope-nope"})
    assert resp.status_code == 401
    assert resp.json["error"] == "Invalid credentials"


def test_inactive_user_cannot_login(client, admin_user, seller_user):
    auth_service.update_user(seller_user.id, {"status": "SUSPENDED"})
    resp = client.post("/api/auth/login", json={"phone": seller_user.phone, "password": PASSWORD})
    assert resp.status_code == 401


def test_me(client, admin_headers):
    resp = client.get("/api/auth/me", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json["user"]["name"] == "Owner"


def test_logout_revokes_token(client, admin_headers):
    assert client.post("/api/auth/logout", headers=admin_headers).status_code == 200
    assert client.get("/api/auth/me", headers=admin_headers).status_code == 401
    assert client.post("/api/auth/logout", headers=admin_headers).status_code == 401


def test_bogus_token(client, admin_user):
    resp = client.get("/api/products", headers=auth_headers("not-a-real-token"))
    assert resp.status_code == 401
    assert resp.json["error"] == "Invalid or expired token"


@pytest.mark.parametrize(
    "method,path",
    [
        ("GET", "/api/products"),
        ("GET", "/api/sales"),
        ("GET", "/api/purchases"),
        ("GET", "/api/customers"),
        ("GET", "/api/installments"),
        ("GET", "/api/repairs"),
        ("GET", "/api/expenses"),
        ("GET", "/api/dashboard/stats"),
        ("GET", "/api/reports/inventory"),
        ("GET", "/api/audit-logs"),
    ],
)
def test_requires_auth(client, method, path):
    resp = getattr(client, method.lower())(path)
    assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"


def test_password_hash_round_trip():
    hashed = auth_service.hash_password("secret123")
    assert auth_service.verify_password("secret123", hashed)
    assert not auth_service.verify_password("secret124", hashed)
    assert not auth_service.verify_password("secret123", "not-a-hash")


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json["checks"]["database"]["status"] == "healthy"


def test_cors_allows_dashboard_origin(client):
    resp = client.get("/health", headers={"Origin": "http://localhost:5173"})
    assert resp.headers["Access-Control-Allow-Origin"] == "http://localhost:5173"
