from fastapi import APIRouter

from courtbook.models.schemas import BookingOutcome
from courtbook.services.booking_service import booking_service

router = APIRouter(prefix="/diagnostics", tags=["diagnostics"])


@router.get("/browser", response_model=BookingOutcome)
async def browser_check() -> BookingOutcome:
    """Check that a browser can be launched and can load a page."""
    return await booking_service.diagnostic_ping()
