from fastapi import APIRouter, Depends, Query

from courtbook.api.deps import checked, require_user
from courtbook.models.schemas import (
    AuthenticatedUser,
    BookingOutcome,
    CodeRequest,
    CodeSubmission,
)
from courtbook.services.booking_service import booking_service

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.post("/request-code", response_model=BookingOutcome)
async def request_code(
    request: CodeRequest, user: AuthenticatedUser = Depends(require_user)
) -> BookingOutcome:
    """Start a booking: drive the site to its SMS code prompt."""
    outcome = await booking_service.request_verification_code(
        user,
        court=request.court,
        requested_time=request.time,
        target_date=request.date,
    )
    return checked(outcome)


@router.post("/submit-code", response_model=BookingOutcome)
async def submit_code(
    submission: CodeSubmission, user: AuthenticatedUser = Depends(require_user)
) -> BookingOutcome:
    """Finish a booking with the SMS code the user received."""
    outcome = await booking_service.submit_verification_code(
        user, submission.code, ticket=submission.ticket
    )
    return checked(outcome)


@router.get("/history", response_model=BookingOutcome)
async def history(
    days: int | None = Query(default=None, ge=1, le=365),
    user: AuthenticatedUser = Depends(require_user),
) -> BookingOutcome:
    return await booking_service.get_history(user, days)
