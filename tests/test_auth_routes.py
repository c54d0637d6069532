"""Integration tests for login, lockout and password changes."""

from __future__ import annotations

from flask.testing import FlaskClient

ADMIN_USERNAME = "admin"
ADMIN_PASSWORD = "Admin!2345"


def _login(client: FlaskClient, password: str = ADMIN_PASSWORD, username: str = ADMIN_USERNAME):
    return client.post("/api/login", json={"username": username, "password": password})


def test_login_returns_user_and_sets_session_cookie(client: FlaskClient) -> None:
    response = _login(client)

    assert response.status_code == 200
    body = response.get_json()
    assert body["username"] == ADMIN_USERNAME
    assert "passwordHash" not in body and "password_hash" not in body
    cookie = response.headers.get("Set-Cookie", "")
    assert cookie.startswith("sessionId=")
    assert "HttpOnly" in cookie

    assert client.get("/api/user").get_json()["username"] == ADMIN_USERNAME


def test_logout_ends_session(admin_client: FlaskClient) -> None:
    assert admin_client.post("/api/logout").get_json() == {"success": True}

    response = admin_client.get("/api/user")
    assert response.status_code == 401
    assert response.get_json() == {"error": "Unauthorized"}


def test_login_requires_both_fields(client: FlaskClient) -> None:
    response = client.post("/api/login", json={"username": ADMIN_USERNAME})

    assert response.status_code == 400
    assert response.get_json() == {"error": "Username and password are required"}


def test_wrong_password_is_rejected(client: FlaskClient) -> None:
    response = _login(client, password="Wrong!2345")

    assert response.status_code == 401
    assert response.get_json() == {"error": "Invalid username or password"}
    assert _login(client, username="nobody").status_code == 401


def test_account_locks_after_five_failures(client: FlaskClient) -> None:
    for _ in range(5):
        response = _login(client, password="Wrong!2345")
        assert response.get_json() == {"error": "Invalid username or password"}

    locked = _login(client)

    assert locked.status_code == 401
    assert locked.get_json() == {
        "error": "Account temporarily locked. Try again in 30 minutes."
    }


def test_successful_login_clears_failures(client: FlaskClient) -> None:
    for _ in range(4):
        _login(client, password="Wrong!2345")
    assert _login(client).status_code == 200
    client.post("/api/logout")

    for _ in range(4):
        _login(client, password="Wrong!2345")
    assert _login(client).status_code == 200


def test_login_rate_limit_returns_429(make_app) -> None:
    app = make_app(login_rate_limit="3 per minute")
    client = app.test_client()
    client.environ_base["REMOTE_ADDR"] = "203.0.113.20"

    for _ in range(3):
        assert _login(client, password="Wrong!2345").status_code == 401

    response = _login(client, password="Wrong!2345")
    assert response.status_code == 429
    assert response.get_json() == {
        "error": "Too many login attempts. Please try again after 15 minutes."
    }


def test_change_password_requires_login(client: FlaskClient) -> None:
    response = client.post(
        "/api/change-password",
        json={"currentPassword": ADMIN_PASSWORD, "newPassword": "Better!2345"},
    )

    assert response.status_code == 401


def test_change_password_validates_new_password(admin_client: FlaskClient) -> None:
    response = admin_client.post(
        "/api/change-password",
        json={"currentPassword": ADMIN_PASSWORD, "newPassword": "weak"},
    )

    assert response.status_code == 400
    body = response.get_json()
    assert body["error"] == "Password must be at least 8 characters"
    assert "newPassword" in body["errors"]


def test_change_password_checks_current_password(admin_client: FlaskClient) -> None:
    response = admin_client.post(
        "/api/change-password",
        json={"currentPassword": "Wrong!2345", "newPassword": "Better!2345"},
    )

    assert response.status_code == 401
    assert response.get_json() == {"error": "Current password is incorrect"}


def test_change_password_rotates_credentials(admin_client: FlaskClient) -> None:
    response = admin_client.post(
        "/api/change-password",
        json={"currentPassword": ADMIN_PASSWORD, "newPassword": "Better!2345"},
    )
    assert response.get_json() == {"message": "Password changed successfully"}
    admin_client.post("/api/logout")

    assert _login(admin_client).status_code == 401
    assert _login(admin_client, password="Better!2345").status_code == 200


def test_login_rate_limit_is_scoped_per_username(make_app) -> None:
    app = make_app(login_rate_limit="3 per minute")
    client = app.test_client()
    client.environ_base["REMOTE_ADDR"] = "203.0.113.30"

    for _ in range(3):
        _login(client, password="Wrong!2345")

    assert _login(client, username=" ADMIN ", password="Wrong!2345").status_code == 429
    assert _login(client, username="owner", password="Wrong!2345").status_code == 401
