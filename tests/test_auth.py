import re

from services import notifications


def _reset_token(email):
    match = re.search(r"reset-password/([0-9a-f]{40})", email.html)
    assert match, email.html
    return match.group(1)


def test_register_and_login(client):
    # 1. Test Registration
    response = client.post(
        "/api/auth/register",
        json={
            "name": "Rajesh Kumar",
            "email": "Rajesh@test.com",
            "password": "password123",
            "state": "Maharashtra",
            "city": "Pune",
        },
    )
    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["user"]["email"] == "rajesh@test.com"
    assert body["user"]["role"] == "user"
    assert "password_hash" not in body["user"]

    # Check duplicate email
    response = client.post(
        "/api/auth/register",
        json={"name": "Rajesh", "email": "rajesh@test.com", "password": "password123"},
    )
    assert response.status_code == 400
    assert response.json() == {
        "success": False,
        "message": "User already exists with this email",
    }

    # 2. Test Login
    response = client.post(
        "/api/auth/login", json={"email": "rajesh@test.com", "password": "password123"}
    )
    assert response.status_code == 200
    data = response.json()
    assert data["token"] and data["refresh_token"]

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {data['token']}"})
    assert me.status_code == 200
    assert me.json()["user"]["city"] == "Pune"


def test_register_rejects_invalid_payload(client):
    response = client.post(
        "/api/auth/register", json={"email": "not-an-email", "password": "123"}
    )
    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["message"] == "Validation failed"
    assert body["errors"]


def test_login_wrong_password_and_blocked_user(client, make_citizen):
    make_citizen(email="blocked@test.com", is_blocked=True)
    make_citizen(email="ok@test.com")

    response = client.post(
        "/api/auth/login", json={"email": "ok@test.com", "password": "wrong"}
    )
    assert response.status_code == 401
    assert response.json()["message"] == "Invalid credentials"

    response = client.post(
        "/api/auth/login", json={"email": "blocked@test.com", "password": "password123"}
    )
    assert response.status_code == 403


def test_rate_limiting_login(client):
    # The rate limiter is configured to 10/minute for login
    payload = {"email": "test@test.com", "password": "wrong"}

    for _ in range(10):
        client.post("/api/auth/login", json=payload)

    # The 11th request MUST be rate limited (429)
    response = client.post("/api/auth/login", json=payload)
    assert response.status_code == 429


def test_protected_route_requires_token(client, volunteer):
    assert client.get("/api/complaints").status_code == 401

    _, volunteer_headers = volunteer
    response = client.get("/api/complaints", headers=volunteer_headers)
    assert response.status_code == 403


def test_refresh_issues_new_pair(client):
    registered = client.post(
        "/api/auth/register",
        json={"name": "Meera", "email": "meera@test.com", "password": "password123"},
    ).json()

    response = client.post(
        "/api/auth/refresh", json={"refresh_token": registered["refresh_token"]}
    )
    assert response.status_code == 200
    assert response.json()["token"]

    # An access token is not accepted as a refresh token
    response = client.post("/api/auth/refresh", json={"refresh_token": registered["token"]})
    assert response.status_code == 401


def test_update_profile(client, citizen):
    _, headers = citizen
    response = client.put(
        "/api/auth/profile",
        json={"phone_number": "9999999999", "city": "Nagpur"},
        headers=headers,
    )
    assert response.status_code == 200
    user = response.json()["user"]
    assert user["phone_number"] == "9999999999"
    assert user["city"] == "Nagpur"


def test_forgot_and_reset_password(client, citizen, outbox):
    response = client.post(
        "/api/auth/forgot-password", json={"email": "citizen@test.com"}
    )
    assert response.status_code == 200
    assert len(outbox) == 1
    assert outbox[0].to == "citizen@test.com"
    token = _reset_token(outbox[0])

    response = client.post(
        f"/api/auth/reset-password/{token}", json={"password": "newpass123"}
    )
    assert response.status_code == 200

    # Tokens are single use
    response = client.post(
        f"/api/auth/reset-password/{token}", json={"password": "another123"}
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Invalid or expired token"

    response = client.post(
        "/api/auth/login", json={"email": "citizen@test.com", "password": "newpass123"}
    )
    assert response.status_code == 200


def test_forgot_password_unknown_email(client):
    response = client.post("/api/auth/forgot-password", json={"email": "nobody@test.com"})
    assert response.status_code == 404
    assert response.json()["message"] == "User not found"


def test_forgot_password_email_failure_clears_token(client, citizen, test_db, monkeypatch):
    user, _ = citizen

    def failing_send(email):
        raise notifications.EmailDeliveryError("smtp down")

    monkeypatch.setattr(notifications, "send_email", failing_send)

    response = client.post(
        "/api/auth/forgot-password", json={"email": "citizen@test.com"}
    )
    assert response.status_code == 500
    assert response.json()["message"] == "Email could not be sent"

    test_db.refresh(user)
    assert user.reset_password_token is None
    assert user.reset_password_expire is None
