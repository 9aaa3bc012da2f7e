"""Plain-text messages returned to callers."""

from courtbook.config import settings
from courtbook.models.schemas import Availability, CompletedBooking, PendingBooking


def availability_message(availability: Availability) -> str:
    if availability.error:
        return (
            f"Sorry, I couldn't check availability for {availability.court} on "
            f"{availability.date}. Error: {availability.error}"
        )
    if not availability.available_times:
        return f"No time slots are available at {availability.court} on {availability.date}."

    message = (
        f"{availability.court} has {len(availability.available_times)} available time slots "
        f"on {availability.date}: {', '.join(availability.available_times)}."
    )
    if availability.requested_time and availability.requested_time_available:
        message += f" Your requested time of {availability.requested_time} is available!"
    elif availability.requested_time:
        message += (
            f" Unfortunately, your requested time of {availability.requested_time} "
            "is not available."
        )
    return message


def awaiting_code_message(pending: PendingBooking) -> str:
    return (
        "SMS verification code requested.\n"
        f"Court: {pending.court}\n"
        f"Date: {pending.date}\n"
        f"Time: {pending.time}\n"
        f"Ticket: {pending.ticket}\n\n"
        "Check your phone for the code, then submit it to complete the booking."
    )


def booked_message(completed: CompletedBooking) -> str:
    return (
        "Booking complete!\n"
        f"Court: {completed.court}\n"
        f"Date: {completed.date}\n"
        f"Time: {completed.time}\n"
        f"Booked by: {completed.user_email}"
    )


def no_pending_session_message() -> str:
    return (
        "No SMS verification page found. The booking session may have expired or the "
        "server restarted. Request a new verification code first."
    )


def no_pending_booking_message(email: str) -> str:
    return f"No pending booking found for user {email}. Cannot complete booking."


def reserved_conflict_message() -> str:
    return "Court already reserved at this time"


def verification_timeout_message() -> str:
    return "Booking timeout - check SF Rec website manually to verify booking status"


def history_message(bookings: list[CompletedBooking], days: int) -> str:
    if not bookings:
        return f"No bookings found in the last {days} days."
    lines = [f"{b.date} - {b.court} at {b.time} ({b.status.value})" for b in bookings]
    return f"Your bookings in the last {days} days:\n" + "\n".join(lines)


def auth_required_message() -> str:
    authorized = ", ".join(settings.authorized_emails) or "No authorized users configured"
    return (
        "Auth required. This booking operation requires authentication.\n"
        f"Authenticate at: {settings.auth_url}\n"
        "Sign in with an authorized e-mail, then try the booking again.\n"
        f"Authorized users: {authorized}"
    )
