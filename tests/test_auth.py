from auth import create_access_token, decode_token, hash_password, verify_password
from conftest import register


def test_password_hash_roundtrip():
    hashed = hash_password("secreto123")
    assert hashed != "secreto123"
    assert verify_password("secreto123", hashed)
    assert not verify_password("otra", hashed)


def test_verify_password_with_corrupt_hash_is_false():
    assert verify_password("secreto123", "no-es-un-hash") is False


def test_token_contains_user_id():
    payload = decode_token(create_access_token(7, "ana@example.com"))
    assert payload["sub"] == "7"
    assert payload["email"] == "ana@example.com"


def test_register_returns_token_user_and_cookie(client):
    response = client.post(
        "/api/auth/register",
        json={"name": "Ana", "email": "Ana@Example.com", "password": "secreto123"},
    )
    assert response.status_code == 201
    body = response.json()
    assert body["token"]
    assert body["user"]["email"] == "ana@example.com"
    assert "password_hash" not in body["user"]
    assert "token" in response.cookies


def test_register_duplicate_email_conflicts(client):
    register(client)
    response = client.post(
        "/api/auth/register",
        json={"name": "Otra Ana", "email": "ana@example.com", "password": "secreto123"},
    )
    assert response.status_code == 409


def test_register_short_password_is_400(client):
    response = client.post(
        "/api/auth/register", json={"name": "Ana", "email": "ana@example.com", "password": "123"}
    )
    assert response.status_code == 400
    assert "password" in response.json()["detail"]


def test_login_ok_and_wrong_password(client):
    register(client)
    ok = client.post("/api/auth/login", json={"email": "ana@example.com", "password": "secreto123"})
    assert ok.status_code == 200
    assert ok.json()["user"]["name"] == "Ana"

    bad = client.post("/api/auth/login", json={"email": "ana@example.com", "password": "incorrecta"})
    assert bad.status_code == 401

    unknown = client.post("/api/auth/login", json={"email": "nadie@example.com", "password": "secreto123"})
    assert unknown.status_code == 401


def test_me_with_bearer_header(client, auth_headers):
    response = client.get("/api/auth/me", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["user"]["email"] == "ana@example.com"


def test_me_with_cookie(client):
    client.post(
        "/api/auth/register",
        json={"name": "Ana", "email": "ana@example.com", "password": "secreto123"},
    )
    response = client.get("/api/auth/me")
    assert response.status_code == 200
    assert response.json()["user"]["name"] == "Ana"


def test_logout_clears_cookie(client):
    client.post(
        "/api/auth/register",
        json={"name": "Ana", "email": "ana@example.com", "password": "secreto123"},
    )
    client.post("/api/auth/logout")
    assert client.get("/api/auth/me").status_code == 401


def test_missing_token_is_401(client):
    response = client.get("/api/goals")
    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Bearer"


def test_garbage_token_is_401(client):
    response = client.get("/api/goals", headers={"Authorization": "Bearer esto.no.vale"})
    assert response.status_code == 401


def test_expired_token_is_401(client):
    _, user = register(client, email="caducado@example.com")
    token = create_access_token(user["id"], user["email"], expires_in=-60)
    response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


def test_token_for_unknown_user_is_401(client):
    token = create_access_token(9999, "fantasma@example.com")
    response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401
