"""
Auth cookies and the uniform failure response of the auth routes.

Cookie contract:
- session_token: httpOnly, path "/", max-age = session lifetime (15 min)
- refresh_token: httpOnly, path = refresh endpoint, max-age = refresh lifetime (30 days)
- production: secure + SameSite=strict (+ optional domain); otherwise lax, not secure
"""

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from starlette import status

from core.config import settings
from core.errors import AuthFailure
from schemas.token_schemas import TokenPair

SESSION_COOKIE = "session_token"
REFRESH_COOKIE = "refresh_token"

FAILURE_RESPONSES = {
    AuthFailure.INVALID_CREDENTIALS: (
        status.HTTP_401_UNAUTHORIZED, "Invalid email or password"),
    AuthFailure.EMAIL_NOT_VERIFIED: (
        status.HTTP_403_FORBIDDEN, "Please verify your email before logging in"),
    AuthFailure.INVALID_OR_EXPIRED_REFRESH_TOKEN: (
        status.HTTP_401_UNAUTHORIZED, "Session expired. Please login again."),
    AuthFailure.INVALID_VERIFICATION_TOKEN: (
        status.HTTP_400_BAD_REQUEST, "Invalid, expired, or already used verification token"),
    AuthFailure.EMAIL_ALREADY_REGISTERED: (
        status.HTTP_409_CONFLICT, "Email already registered"),
    AuthFailure.UNAUTHENTICATED: (
        status.HTTP_401_UNAUTHORIZED, "Session expired or invalid"),
}


class AuthRejected(Exception):
    """Raised from routes and dependencies; rendered by auth_rejected_handler."""

    def __init__(self, failure: AuthFailure):
        super().__init__(failure.value)
        self.failure = failure


def _cookie_policy() -> dict:
    secure = settings.is_production
    return {
        "httponly": True,
        "secure": secure,
        "samesite": "strict" if secure else "lax",
        "domain": settings.COOKIE_DOMAIN if secure else None,
    }


def set_auth_cookies(response: JSONResponse, pair: TokenPair) -> None:
    policy = _cookie_policy()
    response.set_cookie(
        SESSION_COOKIE,
        pair.session_token,
        max_age=settings.SESSION_TOKEN_EXPIRE_MINUTES * 60,
        path="/",
        **policy
    )
    response.set_cookie(
        REFRESH_COOKIE,
        pair.refresh_token,
        max_age=settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60,
        expires=pair.refresh_expires_at,
        path=settings.REFRESH_COOKIE_PATH,
        **policy
    )


def clear_auth_cookies(response: JSONResponse) -> None:
    policy = _cookie_policy()
    response.delete_cookie(SESSION_COOKIE, path="/", **policy)
    response.delete_cookie(REFRESH_COOKIE, path=settings.REFRESH_COOKIE_PATH, **policy)


def failure_response(failure: AuthFailure) -> JSONResponse:
    status_code, detail = FAILURE_RESPONSES[failure]
    response = JSONResponse(
        status_code=status_code,
        content={"detail": detail, "code": failure.value}
    )
    clear_auth_cookies(response)
    return response


def json_response(content: dict, status_code: int = status.HTTP_200_OK) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=jsonable_encoder(content))


async def auth_rejected_handler(request: Request, exc: AuthRejected):
    return failure_response(exc.failure)
