from typing import Annotated
from fastapi import APIRouter, BackgroundTasks, Cookie, Query, Request
from starlette import status

from core.errors import AuthFailure
from middleware.rate_limiter import limiter
from schemas.auth_schemas import CreateUserRequest, LoginRequest, LogoutRequest, RefreshTokenRequest
from services.email_service import send_verification_email
from utils.deps import auth_dependency, optional_user_dependency, get_client_ip, get_user_agent
from utils.logger import get_logger
from utils.responses import (AuthRejected, clear_auth_cookies, json_response, set_auth_cookies)

# Setup logger
logger = get_logger(__name__)


router = APIRouter(
    prefix="/auth",
    tags=["auth"]
)


@router.post("/register", status_code=status.HTTP_201_CREATED)
@limiter.limit("3/minute")
def register(request: Request, body: CreateUserRequest, auth: auth_dependency, bg: BackgroundTasks):
    """
    Creates an unverified user and emails a verification link.
    No session is issued until the email is verified.
    """
    result = auth.register(body.email, body.name, body.password)
    if isinstance(result, AuthFailure):
        raise AuthRejected(result)

    bg.add_task(send_verification_email, to_email=result.email, name=result.name,
                token=result.verification_token)

    return {
        "message": f"{result.name} created successfully. Please check your email to verify your account.",
        "data": {
            "user_id": result.user_id,
            "name": result.name,
            "email": result.email,
            "email_verified": False,
        },
    }


@router.get("/verify-email", status_code=status.HTTP_200_OK)
@limiter.limit("10/minute")
def verify_email(request: Request, auth: auth_dependency, token: Annotated[str, Query(min_length=1)]):
    result = auth.verify_email(token)
    if isinstance(result, AuthFailure):
        raise AuthRejected(result)

    return {
        "message": "Email verified successfully!",
        "data": {"user_id": result.user_id, "email": result.email},
    }


@router.post("/login", status_code=status.HTTP_200_OK)
@limiter.limit("5/minute")
def login(request: Request, body: LoginRequest, auth: auth_dependency):
    result = auth.login(body.email, body.password, get_client_ip(request), get_user_agent(request))
    if isinstance(result, AuthFailure):
        raise AuthRejected(result)

    response = json_response({
        "message": "Login successful",
        "data": {
            "user": {"id": result.user_id, "email": body.email.lower().strip()},
            "session": {"expires_at": result.session_expires_at},
        },
    })
    set_auth_cookies(response, result)
    return response


@router.post("/refresh", status_code=status.HTTP_200_OK)
@limiter.limit("10/minute")
def refresh(request: Request, auth: auth_dependency, body: RefreshTokenRequest | None = None,
            refresh_token: Annotated[str | None, Cookie()] = None):
    """
    Rotates the refresh token (cookie first, then body) into a new token pair.
    """
    token = refresh_token or (body.refresh_token if body else None)
    if not token:
        raise AuthRejected(AuthFailure.INVALID_OR_EXPIRED_REFRESH_TOKEN)

    result = auth.refresh(token, get_client_ip(request), get_user_agent(request))
    if isinstance(result, AuthFailure):
        raise AuthRejected(result)

    response = json_response({
        "message": "Session refreshed",
        "data": {"session": {"expires_at": result.session_expires_at}},
    })
    set_auth_cookies(response, result)
    return response


@router.post("/logout", status_code=status.HTTP_200_OK)
@limiter.limit("10/minute")
def logout(request: Request, auth: auth_dependency, user: optional_user_dependency,
           body: LogoutRequest | None = None,
           session_token: Annotated[str | None, Cookie()] = None):
    """
    Ends the current session, or all of the user's sessions with logout_all.
    The refresh token issued with the session is revoked alongside it.
    Always succeeds and always clears the auth cookies.
    """
    logout_all = body.logout_all if body else False

    if user is not None:
        auth.logout(session_token, user.id, logout_all=logout_all)

    response = json_response({
        "message": "Logged out from all devices" if (logout_all and user) else "Logged out successfully"
    })
    clear_auth_cookies(response)
    return response
