import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from courtbook.api import auth, bookings, courts, diagnostics, health
from courtbook.config import settings
from courtbook.models.database import init_db
from courtbook.providers.rec_provider import RecParkSiteAdapter
from courtbook.services.booking_service import booking_service

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    await init_db()

    if not settings.rec_email or not settings.rec_password:
        logger.warning(
            "Rec credentials not configured. Availability checks will work, "
            "but bookings will fail. Set REC_EMAIL and REC_PASSWORD."
        )
    if not settings.authorized_emails:
        logger.warning(
            "AUTHORIZED_USER_EMAILS is empty. Nobody can authenticate to book courts."
        )
    if not settings.gemini_api_key:
        logger.info("GEMINI_API_KEY not set - availability summaries use plain templates")

    booking_service.set_site_adapter(RecParkSiteAdapter())

    yield

    await booking_service.shutdown()


app = FastAPI(
    title="courtbook",
    description="Tennis court booking for SF Rec & Park with SMS code verification",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(health.router)
app.include_router(courts.router)
app.include_router(bookings.router)
app.include_router(auth.router)
app.include_router(diagnostics.router)
