from datetime import datetime

from conftest import TEST_PASSWORD, cleared_cookies
from utils.responses import FAILURE_RESPONSES
from core.errors import AuthFailure, StoreUnavailable


async def test_login_success(client, verified_user):
    """Test successful login sets both auth cookies."""

    response = await client.post("/auth/login", json={
        "email": verified_user.email,
        "password": TEST_PASSWORD
    })

    assert response.status_code == 200

    data = response.json()["data"]
    assert data["user"] == {"id": verified_user.id, "email": verified_user.email}
    assert datetime.fromisoformat(data["session"]["expires_at"])

    # Tokens travel in cookies only
    assert response.cookies.get("session_token")
    assert response.cookies.get("refresh_token")
    assert "session_token" not in response.text
    assert "refresh_token" not in response.json()["data"]

    headers = response.headers.get_list("set-cookie")
    session_header = next(h for h in headers if h.startswith("session_token="))
    refresh_header = next(h for h in headers if h.startswith("refresh_token="))
    assert "httponly" in session_header.lower()
    assert "max-age=900" in session_header.lower()
    assert "path=/auth/refresh" in refresh_header.lower()


async def test_login_wrong_password(client, verified_user):
    """Test login with incorrect password."""

    response = await client.post("/auth/login", json={
        "email": verified_user.email,
        "password": "WrongPassword123!"
    })

    assert response.status_code == 401
    assert response.json() == {
        "detail": FAILURE_RESPONSES[AuthFailure.INVALID_CREDENTIALS][1],
        "code": "INVALID_CREDENTIALS"
    }
    assert cleared_cookies(response) == {"session_token", "refresh_token"}


async def test_login_nonexistent_user(client, verified_user):
    """Unknown email is indistinguishable from a wrong password."""
    unknown = await client.post("/auth/login", json={
        "email": "nonexistent@example.com",
        "password": TEST_PASSWORD
    })
    wrong = await client.post("/auth/login", json={
        "email": verified_user.email,
        "password": "WrongPassword123!"
    })

    assert unknown.status_code == wrong.status_code == 401
    assert unknown.json() == wrong.json()


async def test_login_unverified_email(client, make_user):
    """Test login with unverified email."""
    make_user(email="unverified@example.com", verified=False)

    response = await client.post("/auth/login", json={
        "email": "unverified@example.com",
        "password": TEST_PASSWORD
    })

    assert response.status_code == 403
    assert response.json()["code"] == "EMAIL_NOT_VERIFIED"
    assert "verify your email" in response.json()["detail"].lower()
    assert response.cookies.get("session_token") is None


async def test_login_email_case_insensitive(client, verified_user):
    response = await client.post("/auth/login", json={
        "email": verified_user.email.upper(),
        "password": TEST_PASSWORD
    })

    assert response.status_code == 200


async def test_login_invalid_payload(client):
    response = await client.post("/auth/login", json={"email": "not-an-email", "password": "x"})

    assert response.status_code == 422


async def test_login_store_unavailable(client, verified_user, auth_service, monkeypatch):
    """Store failures surface as 503, never as a session."""
    def _fail(*args, **kwargs):
        raise StoreUnavailable("down")

    monkeypatch.setattr(auth_service.tokens, "create_pair", _fail)

    response = await client.post("/auth/login", json={
        "email": verified_user.email,
        "password": TEST_PASSWORD
    })

    assert response.status_code == 503
    assert response.json()["code"] == "STORE_UNAVAILABLE"
    assert cleared_cookies(response) == {"session_token", "refresh_token"}
