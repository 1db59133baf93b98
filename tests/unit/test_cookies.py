from datetime import datetime, timedelta, timezone

from core.config import settings
from core.errors import AuthFailure
from schemas.token_schemas import TokenPair
from utils.responses import failure_response, json_response, set_auth_cookies


def make_pair() -> TokenPair:
    now = datetime.now(timezone.utc)
    return TokenPair(
        user_id="user-1",
        session_token="s" * 64,
        refresh_token="r" * 64,
        session_expires_at=now + timedelta(minutes=15),
        refresh_expires_at=now + timedelta(days=30),
    )


def cookie_headers(response) -> dict[str, str]:
    headers = response.headers.getlist("set-cookie")
    return {header.split("=", 1)[0]: header.lower() for header in headers}


def test_cookie_shape_outside_production():
    response = json_response({})
    set_auth_cookies(response, make_pair())
    cookies = cookie_headers(response)

    session = cookies["session_token"]
    assert "httponly" in session
    assert "path=/;" in session or session.endswith("path=/")
    assert "max-age=900" in session
    assert "samesite=lax" in session
    assert "secure" not in session

    refresh = cookies["refresh_token"]
    assert "httponly" in refresh
    assert "path=/auth/refresh" in refresh
    assert "max-age=2592000" in refresh
    assert "samesite=lax" in refresh


def test_cookie_shape_in_production(monkeypatch):
    monkeypatch.setattr(settings, "ENV", "production")

    response = json_response({})
    set_auth_cookies(response, make_pair())
    cookies = cookie_headers(response)

    for header in cookies.values():
        assert "secure" in header
        assert "samesite=strict" in header
        assert "httponly" in header


def test_failure_response_clears_both_cookies():
    response = failure_response(AuthFailure.INVALID_CREDENTIALS)
    cookies = cookie_headers(response)

    assert response.status_code == 401
    assert 'max-age=0' in cookies["session_token"]
    assert 'max-age=0' in cookies["refresh_token"]
    assert "path=/auth/refresh" in cookies["refresh_token"]


def test_failure_statuses():
    assert failure_response(AuthFailure.EMAIL_NOT_VERIFIED).status_code == 403
    assert failure_response(AuthFailure.INVALID_OR_EXPIRED_REFRESH_TOKEN).status_code == 401
    assert failure_response(AuthFailure.INVALID_VERIFICATION_TOKEN).status_code == 400
    assert failure_response(AuthFailure.EMAIL_ALREADY_REGISTERED).status_code == 409
    assert failure_response(AuthFailure.UNAUTHENTICATED).status_code == 401
