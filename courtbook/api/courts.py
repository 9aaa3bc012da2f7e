from fastapi import APIRouter

from courtbook.api.deps import checked
from courtbook.models.schemas import AvailabilityRequest, BookingOutcome
from courtbook.services.booking_service import booking_service

router = APIRouter(prefix="/courts", tags=["courts"])


@router.post("/availability", response_model=BookingOutcome)
async def check_availability(request: AvailabilityRequest) -> BookingOutcome:
    outcome = await booking_service.check_availability(
        target_date=request.date,
        court=request.court,
        requested_time=request.time,
    )
    return checked(outcome)
