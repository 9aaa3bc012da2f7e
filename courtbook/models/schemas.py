import datetime as dt
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.UTC).replace(tzinfo=None)


class BookingStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"


class Phase1State(str, Enum):
    START = "start"
    CONNECTED = "connected"
    LOGGED_IN = "logged_in"
    RESOURCE_SELECTED = "resource_selected"
    DATE_SELECTED = "date_selected"
    SLOT_CONFIRMED = "slot_confirmed"
    DURATION_SET = "duration_set"
    PARTICIPANT_SELECTED = "participant_selected"
    CODE_REQUESTED = "code_requested"
    AWAITING_CODE = "awaiting_code"
    FAILED = "failed"


class Phase2State(str, Enum):
    START = "start"
    CODE_ENTERED = "code_entered"
    CONFIRM_CLICKED = "confirm_clicked"
    SUCCEEDED = "succeeded"
    RESERVED_CONFLICT = "reserved_conflict"
    TIMEOUT = "timeout"
    FAILED = "failed"


class OutcomeKind(str, Enum):
    AVAILABILITY = "availability"
    AWAITING_CODE = "awaiting_code"
    BOOKED = "booked"
    FAILED = "failed"
    RESOURCE_UNAVAILABLE = "resource_unavailable"
    SLOT_UNAVAILABLE = "slot_unavailable"
    NO_PENDING_SESSION = "no_pending_session"
    NO_PENDING_BOOKING = "no_pending_booking"
    RESERVED_CONFLICT = "reserved_conflict"
    VERIFICATION_TIMEOUT = "verification_timeout"
    VERIFICATION_PENDING = "verification_pending"
    VERIFICATION_IN_PROGRESS = "verification_in_progress"
    INVALID_REQUEST = "invalid_request"
    AUTH_REQUIRED = "auth_required"
    HISTORY = "history"
    DIAGNOSTIC = "diagnostic"


class PendingBooking(BaseModel):
    """A booking whose verification code has been requested but not yet submitted."""

    court: str
    time: str = Field(..., description="Normalised slot time, e.g. '3:00 PM'")
    date: str = Field(..., description="Target date, YYYY-MM-DD")
    ticket: str = Field(..., description="Identifies this pending verification")
    created_at: dt.datetime = Field(default_factory=utcnow)


class CompletedBooking(BaseModel):
    court: str
    time: str
    date: str
    user_email: str
    user_id: str
    completed_at: dt.datetime = Field(default_factory=utcnow)
    status: BookingStatus = BookingStatus.COMPLETED


class AuthenticatedUser(BaseModel):
    id: str
    email: str
    verified: bool = True
    created_at: dt.datetime = Field(default_factory=utcnow)


class Availability(BaseModel):
    court: str
    date: str
    available_times: list[str] = Field(default_factory=list)
    requested_time: str | None = None
    requested_time_available: bool | None = None
    error: str | None = None


class BookingOutcome(BaseModel):
    """What a service operation reports back to its caller."""

    kind: OutcomeKind
    message: str
    state: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.kind in (
            OutcomeKind.AVAILABILITY,
            OutcomeKind.AWAITING_CODE,
            OutcomeKind.BOOKED,
            OutcomeKind.HISTORY,
            OutcomeKind.DIAGNOSTIC,
        )


# ========== API payloads ==========


class AvailabilityRequest(BaseModel):
    date: str | None = Field(default=None, description="YYYY-MM-DD, 'today', 'tomorrow', ...")
    court: str | None = None
    time: str | None = Field(default=None, description="Optional time to check, e.g. '3pm'")


class CodeRequest(BaseModel):
    court: str | None = None
    time: str = Field(..., description="Slot time, e.g. '3pm' or '3:00 PM'")
    date: str | None = None


class CodeSubmission(BaseModel):
    code: str = Field(..., min_length=1, description="The SMS verification code")
    ticket: str | None = None


class AuthenticateRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
