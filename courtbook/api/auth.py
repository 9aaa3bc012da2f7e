from fastapi import APIRouter, Header, HTTPException

from courtbook.config import settings
from courtbook.models.schemas import AuthenticatedUser, AuthenticateRequest
from courtbook.services.auth_service import auth_service

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/authenticate", response_model=AuthenticatedUser)
async def authenticate(request: AuthenticateRequest) -> AuthenticatedUser:
    """Register an auth session for an authorized e-mail address."""
    user = await auth_service.authorize(request.user_id, request.email)
    if user is None:
        raise HTTPException(status_code=403, detail=f"{request.email} is not an authorized user")
    return user


@router.get("/status")
async def auth_status(x_user_id: str | None = Header(default=None)) -> dict:
    user = await auth_service.authenticate(x_user_id)
    if user is None:
        return {
            "authenticated": False,
            "auth_url": settings.auth_url,
            "authorized_users": settings.authorized_emails,
        }
    return {
        "authenticated": True,
        "user_id": user.id,
        "email": user.email,
        "authenticated_at": user.created_at.isoformat(),
    }


@router.get("/url")
async def auth_url() -> dict[str, str]:
    return {
        "auth_url": settings.auth_url,
        "instructions": (
            "Sign in with an authorized e-mail, then call POST /auth/authenticate "
            "and send your user id in the X-User-Id header."
        ),
    }
