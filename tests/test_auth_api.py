import pytest

from conftest import ADMIN_EMAIL, ADMIN_PASSWORD


def test_register_then_login_as_customer(client):
    r = client.post("/api/auth/register", json={"email": "Buyer@shop.io", "password": "secret1"})
    assert r.status_code == 200
    assert r.json()["message"] == "Customer registered successfully"

    r = client.post("/api/auth/login", json={"email": "Buyer@shop.io", "password": "secret1"})
    assert r.status_code == 200
    assert r.json()["role"] == "customer"
    assert "token" in r.cookies

    me = client.get("/api/auth/me").json()
    assert me["user"] == {"role": "customer", "email": "Buyer@shop.io"}


def test_register_twice_is_duplicate(client):
    creds = {"email": "twice@shop.io", "password": "secret1"}
    assert client.post("/api/auth/register", json=creds).status_code == 200
    r = client.post("/api/auth/register", json=creds)
    assert r.status_code == 400
    assert r.json()["detail"] == "duplicate_key"


def test_admin_email_cannot_be_registered(client):
    r = client.post("/api/auth/register", json={"email": ADMIN_EMAIL, "password": "whatever"})
    assert r.json()["detail"] == "duplicate_key"


@pytest.mark.parametrize("body,field", [
    ({"email": "nope", "password": "secret1"}, "email"),
    ({"email": "a@b.co", "password": "123"}, "password"),
    ({"password": "secret1"}, "email"),
    ({"email": 123, "password": "secret1"}, "email"),
    ({"email": "a@b.co", "password": 1234567}, "password"),
    ({"email": "x@...", "password": "secret1"}, "email"),
])
def test_register_validation(client, body, field):
    r = client.post("/api/auth/register", json=body)
    assert r.status_code == 400
    assert r.json()["field"] == field


def test_wrong_password_is_unauthorized_not_not_found(client):
    client.post("/api/auth/register", json={"email": "c@shop.io", "password": "secret1"})
    r = client.post("/api/auth/login", json={"email": "c@shop.io", "password": "wrong-one"})
    assert r.status_code == 401
    assert r.json()["detail"] == "unauthorized"

    r = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": "wrong-one"})
    assert r.status_code == 401


def test_unknown_customer_is_unauthorized(client):
    r = client.post("/api/auth/login", json={"email": "ghost@shop.io", "password": "secret1"})
    assert r.status_code == 401


def test_admin_login_and_logout(client):
    r = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert r.json()["role"] == "admin"
    assert client.get("/api/auth/me").json()["user"]["role"] == "admin"

    assert client.post("/api/auth/logout").status_code == 200
    client.cookies.clear()
    assert client.get("/api/auth/me").status_code == 401


def test_bearer_header_is_accepted(client):
    token = client.post(
        "/api/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD}
    ).json()["access_token"]
    client.cookies.clear()
    r = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 200


def test_tampered_token_is_rejected(client):
    r = client.get("/api/auth/me", headers={"Authorization": "Bearer not.a.token"})
    assert r.status_code == 401


def test_admin_login_disabled_without_configuration(make_client):
    c = make_client(admin_email=None, admin_password=None)
    r = c.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert r.status_code == 401


def test_login_with_non_text_email_is_a_400(client):
    r = client.post("/api/auth/login", json={"email": ["a@b.co"], "password": "secret1"})
    assert r.status_code == 400
    assert r.json()["field"] == "email"


def test_stale_bearer_header_falls_back_to_cookie(client):
    client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert "token" in client.cookies
    r = client.get("/api/auth/me", headers={"Authorization": "Bearer not.a.token"})
    assert r.status_code == 200
    assert r.json()["user"]["role"] == "admin"
