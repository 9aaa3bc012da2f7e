"""
Exceptions raised while driving the reservation site.

Every error carries a human-readable message; BookingService turns them into
BookingOutcome values so that nothing escapes to the HTTP layer.
"""


class BookingError(Exception):
    """Base class for all booking flow failures."""


class ResourceUnavailable(BookingError):
    """The browser could not be created (binding missing or launch failed)."""

    hint = (
        "Check that Chrome and chromedriver are installed, or set SELENIUM_REMOTE_URL "
        "to a reachable remote browser service."
    )


class NavigationTimeout(BookingError):
    """A required page signal did not appear within the step's bound."""

    def __init__(self, step: str, detail: str, page_text: str | None = None) -> None:
        self.step = step
        self.detail = detail
        self.page_text = page_text
        message = f"Timed out during '{step}': {detail}"
        if page_text:
            message += f". Page says: {page_text[:300]}"
        super().__init__(message)


class SlotUnavailable(BookingError):
    """The requested time is not among the site's free slots."""

    def __init__(self, requested_time: str, available: list[str]) -> None:
        self.requested_time = requested_time
        self.available = available
        listing = ", ".join(available) if available else "none"
        super().__init__(f"{requested_time} not available. Available: {listing}")


class VerificationInProgress(BookingError):
    """Another call is already submitting a code on the same page."""
