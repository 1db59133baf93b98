from typing import Annotated
from fastapi import Cookie, Depends, Request

from core.errors import AuthFailure, StoreUnavailable
from schemas.token_schemas import SessionUser
from services.auth_service import AuthService
from utils.logger import get_logger
from utils.responses import AuthRejected

logger = get_logger(__name__)


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service

auth_dependency = Annotated[AuthService, Depends(get_auth_service)]


def get_client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def get_user_agent(request: Request) -> str:
    return request.headers.get("User-Agent", "unknown")


def _resolve_user(auth: AuthService, session_token: str | None) -> SessionUser | AuthFailure:
    try:
        return auth.authenticate(session_token)
    except StoreUnavailable:
        # Fail closed: a store error is never an authenticated request
        logger.error("Session check failed - store unavailable, treating as unauthenticated")
        return AuthFailure.UNAUTHENTICATED


def get_current_user(auth: auth_dependency,
                     session_token: Annotated[str | None, Cookie()] = None) -> SessionUser:
    result = _resolve_user(auth, session_token)
    if isinstance(result, AuthFailure):
        raise AuthRejected(result)
    return result

user_dependency = Annotated[SessionUser, Depends(get_current_user)]


def get_optional_user(auth: auth_dependency,
                      session_token: Annotated[str | None, Cookie()] = None) -> SessionUser | None:
    if not session_token:
        return None
    result = _resolve_user(auth, session_token)
    return None if isinstance(result, AuthFailure) else result

optional_user_dependency = Annotated[SessionUser | None, Depends(get_optional_user)]
