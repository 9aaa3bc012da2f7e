"""
Pending and completed booking records.

A PendingBooking bridges the two phases of a booking: Phase 1 writes it once
the site is waiting for the SMS code, Phase 2 reads and deletes it when the
site confirms. A CompletedBooking is written once per date on success and is
only read afterwards, for history.
"""

import logging
import uuid
from datetime import date, datetime, timedelta

from pydantic import ValidationError

from courtbook.config import settings
from courtbook.models.schemas import AuthenticatedUser, CompletedBooking, PendingBooking, utcnow
from courtbook.services.database_service import database_service

logger = logging.getLogger(__name__)

PENDING_PREFIX = "pending_booking:"
COMPLETED_PREFIX = "booking:"


def pending_key(user_id: str) -> str:
    return f"{PENDING_PREFIX}{user_id}"


def completed_key(booking_date: str) -> str:
    return f"{COMPLETED_PREFIX}{booking_date}"


class BookingRecordStore:
    """Reads and writes booking records through DatabaseService."""

    def __init__(self, pending_ttl_seconds: int | None = None) -> None:
        self.pending_ttl_seconds = (
            settings.pending_booking_ttl_seconds
            if pending_ttl_seconds is None
            else pending_ttl_seconds
        )

    async def store_pending(
        self,
        user_id: str,
        court: str,
        slot_time: str,
        booking_date: str,
        now: datetime | None = None,
    ) -> PendingBooking:
        """Create the user's PendingBooking, replacing any earlier one."""
        now = now or utcnow()
        pending = PendingBooking(
            court=court,
            time=slot_time,
            date=booking_date,
            ticket=str(uuid.uuid4())[:8],
            created_at=now,
        )
        await database_service.put(
            pending_key(user_id),
            pending.model_dump_json(),
            ttl_seconds=self.pending_ttl_seconds,
            now=now,
        )
        logger.info(
            f"Stored pending booking for user {user_id}: {court} {booking_date} {slot_time} "
            f"(ticket {pending.ticket})"
        )
        return pending

    async def get_pending(self, user_id: str, now: datetime | None = None) -> PendingBooking | None:
        """The user's PendingBooking, or None if there is none or it has gone stale."""
        now = now or utcnow()
        raw = await database_service.get(pending_key(user_id), now=now)
        if raw is None:
            return None
        try:
            pending = PendingBooking.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Discarding unreadable pending booking for user {user_id}: {e}")
            return None
        if now - pending.created_at >= timedelta(seconds=self.pending_ttl_seconds):
            return None
        return pending

    async def clear_pending(self, user_id: str) -> None:
        await database_service.delete(pending_key(user_id))

    async def save_completed(
        self,
        pending: PendingBooking,
        user: AuthenticatedUser,
        now: datetime | None = None,
    ) -> CompletedBooking:
        completed = CompletedBooking(
            court=pending.court,
            time=pending.time,
            date=pending.date,
            user_email=user.email,
            user_id=user.id,
            completed_at=now or utcnow(),
        )
        await database_service.put(completed_key(pending.date), completed.model_dump_json())
        logger.info(f"Saved completed booking for {user.email}: {pending.court} {pending.date}")
        return completed

    async def get_completed(self, booking_date: str) -> CompletedBooking | None:
        raw = await database_service.get(completed_key(booking_date))
        if raw is None:
            return None
        return CompletedBooking.model_validate_json(raw)

    async def get_history(
        self, user_email: str, days: int, today: date
    ) -> list[CompletedBooking]:
        """
        Completed bookings made by `user_email` for the `days` dates ending today,
        most recent date first.
        """
        history = []
        for offset in range(days):
            booking_date = (today - timedelta(days=offset)).isoformat()
            completed = await self.get_completed(booking_date)
            if completed and completed.user_email.lower() == user_email.lower():
                history.append(completed)
        return history


booking_records = BookingRecordStore()
