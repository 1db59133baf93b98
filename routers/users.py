from fastapi import APIRouter, HTTPException, Request, Response, status

from middleware.rate_limiter import limiter
from schemas.auth_schemas import UserResponse
from utils.deps import auth_dependency, user_dependency
from utils.logger import get_logger

# Setup logger
logger = get_logger(__name__)


router = APIRouter(
    prefix="/users",
    tags=["users"]
)


@router.get("/me", status_code=status.HTTP_200_OK, response_model=UserResponse)
@limiter.limit("30/minute")
def get_user_info(request: Request, user: user_dependency):
    """
    Get current user info (protected endpoint).
    """
    return UserResponse(
        id=user.id,
        email=user.email,
        name=user.name,
        avatar_url=user.avatar_url,
        is_verified=user.is_verified,
    )


@router.get("/me/sessions", status_code=status.HTTP_200_OK)
@limiter.limit("30/minute")
def list_sessions(request: Request, user: user_dependency, auth: auth_dependency):
    """
    Active sessions of the current user, newest first.
    """
    sessions = auth.list_sessions(user.id)
    return {
        "data": [
            {**s.model_dump(), "current": s.id == user.session_id}
            for s in sessions
        ]
    }


@router.delete("/me/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit("10/minute")
def revoke_session(request: Request, session_id: str, user: user_dependency, auth: auth_dependency):
    if not auth.revoke_session(session_id, user.id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")

    return Response(status_code=status.HTTP_204_NO_CONTENT)
