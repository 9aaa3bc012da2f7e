from fastapi import APIRouter

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check() -> dict[str, str]:
    return {"status": "healthy", "service": "courtbook"}


@router.get("/")
async def root() -> dict[str, str | dict[str, str]]:
    return {
        "service": "courtbook - SF Rec & Park tennis court booking",
        "version": "0.1.0",
        "endpoints": {
            "health": "/health",
            "availability": "/courts/availability",
            "request_code": "/bookings/request-code",
            "submit_code": "/bookings/submit-code",
            "history": "/bookings/history",
            "auth": "/auth/status",
            "diagnostics": "/diagnostics/browser",
        },
    }
