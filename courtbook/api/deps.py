from fastapi import Header, HTTPException

from courtbook.models.schemas import AuthenticatedUser, BookingOutcome, OutcomeKind
from courtbook.services.auth_service import auth_service
from courtbook.services.messages import auth_required_message


async def require_user(x_user_id: str | None = Header(default=None)) -> AuthenticatedUser:
    """The authenticated caller, identified by the X-User-Id header."""
    user = await auth_service.authenticate(x_user_id)
    if user is None:
        raise HTTPException(status_code=401, detail=auth_required_message())
    return user


def checked(outcome: BookingOutcome) -> BookingOutcome:
    """Reject malformed input with 422; every other outcome is returned as is."""
    if outcome.kind == OutcomeKind.INVALID_REQUEST:
        raise HTTPException(status_code=422, detail=outcome.message)
    return outcome
