"""
Booking service for reserving tennis courts on the SF Rec & Park site.

The site confirms every reservation with an SMS code, so a booking spans two
independent calls:

1. request_verification_code() drives the site from the landing page to the
   code prompt, records a PendingBooking and leaves the tab open.
2. submit_verification_code(), called once the user has the code, finds that
   tab, types the code and confirms, then records a CompletedBooking.

Every public method returns a BookingOutcome; no exception escapes to the
caller.
"""

import asyncio
import logging
from datetime import date

from courtbook.config import settings
from courtbook.models.schemas import (
    AuthenticatedUser,
    Availability,
    BookingOutcome,
    OutcomeKind,
    Phase1State,
    Phase2State,
)
from courtbook.providers.base import CourtSiteAdapter
from courtbook.providers.browser import AutomationHandle, BrowserManager, BrowserPage
from courtbook.providers.errors import BookingError, ResourceUnavailable, SlotUnavailable
from courtbook.providers.page_locator import PageLocator, VerificationRegistry
from courtbook.providers.rec_dom_schema import RecDOMSchema
from courtbook.providers.rec_provider import RecParkSiteAdapter
from courtbook.services import messages
from courtbook.services.booking_records import booking_records
from courtbook.services.gemini_service import gemini_service
from courtbook.utils.normalize import local_today, normalize_date, normalize_time, slot_matches

logger = logging.getLogger(__name__)

DIAGNOSTIC_URL = "https://example.com"
DIAGNOSTIC_TIMEOUT_SECONDS = 20.0


class BookingService:
    """
    Runs the two booking phases and the read-only operations around them.

    Attributes:
        browser_manager: Owner of the shared browser.
        registry: Which tab holds each user's pending verification.
    """

    def __init__(
        self,
        browser_manager: BrowserManager | None = None,
        site_adapter: CourtSiteAdapter | None = None,
        registry: VerificationRegistry | None = None,
    ) -> None:
        self.browser_manager = browser_manager or BrowserManager()
        self._site_adapter = site_adapter
        self.registry = registry or VerificationRegistry()

    def set_site_adapter(self, adapter: CourtSiteAdapter) -> None:
        """Set the adapter used to drive the reservation site."""
        self._site_adapter = adapter

    @property
    def site_adapter(self) -> CourtSiteAdapter:
        if self._site_adapter is None:
            self._site_adapter = RecParkSiteAdapter()
        return self._site_adapter

    @property
    def page_locator(self) -> PageLocator:
        return PageLocator(self.site_adapter, self.registry)

    def _transition(self, user_id: str, phase: str, old: str, new: str) -> None:
        logger.info(f"[{phase}] user {user_id}: {old} -> {new}")

    def _resource_unavailable(
        self, error: ResourceUnavailable, state: str | None
    ) -> BookingOutcome:
        return BookingOutcome(
            kind=OutcomeKind.RESOURCE_UNAVAILABLE,
            message=f"{error} {error.hint}",
            state=state,
        )

    async def _close_quietly(self, page: BrowserPage | None) -> None:
        if page is None:
            return
        try:
            await page.close()
        except BookingError as e:
            logger.warning(f"Could not close tab {page.window}: {e}")

    async def _read_text_quietly(self, page: BrowserPage) -> str:
        try:
            return await self.site_adapter.read_page_text(page)
        except BookingError as e:
            logger.warning(f"Could not read text of tab {page.window}: {e}")
            return ""

    # ========== AVAILABILITY ==========

    async def check_availability(
        self,
        target_date: str | None = None,
        court: str | None = None,
        requested_time: str | None = None,
    ) -> BookingOutcome:
        """Read the free slots of a court on a date. Does not need a site login."""
        court = court or settings.default_court
        today = local_today()
        try:
            booking_date = normalize_date(target_date, today)
            slot_time = normalize_time(requested_time) if requested_time else None
        except ValueError as e:
            return BookingOutcome(kind=OutcomeKind.INVALID_REQUEST, message=str(e))

        availability = Availability(court=court, date=booking_date, requested_time=slot_time)
        try:
            handle = await self.browser_manager.acquire()
        except ResourceUnavailable as e:
            return self._resource_unavailable(e, state=None)

        page = None
        try:
            page = await handle.new_page()
            async with page.driving():
                await self.site_adapter.open_home(page)
                await self.site_adapter.select_court(page, court, wait_for_heading=True)
                await self.site_adapter.select_date(page, date.fromisoformat(booking_date), today)
                availability.available_times = await self.site_adapter.read_available_slots(page)
            if slot_time:
                availability.requested_time_available = slot_matches(
                    slot_time, availability.available_times
                )
        except (BookingError, ValueError) as e:
            logger.error(f"Error checking {court}: {e}")
            availability.error = str(e)
        finally:
            await self._close_quietly(page)

        message = await gemini_service.summarize_availability(availability)
        return BookingOutcome(
            kind=OutcomeKind.AVAILABILITY,
            message=message,
            data=availability.model_dump(),
        )

    # ========== PHASE 1 ==========

    async def _has_live_verification(self, user_id: str) -> bool:
        """
        Whether the user has an unexpired PendingBooking whose tab is still open.

        A registration that no longer qualifies is dropped, and its tab closed.
        """
        entry = self.registry.get(user_id)
        if entry is None:
            return False
        handle = self.browser_manager.handle
        page = handle.page_for(entry.window) if handle is not None else None
        if page is not None and await booking_records.get_pending(user_id) is not None:
            return True

        self.registry.discard(user_id)
        if page is not None:
            page.release_hold()
            await self._close_quietly(page)
        return False

    async def request_verification_code(
        self,
        user: AuthenticatedUser,
        court: str | None,
        requested_time: str,
        target_date: str | None,
    ) -> BookingOutcome:
        """
        Phase 1: drive the site up to the SMS code prompt.

        On success the tab is left open at the prompt, held so the browser is
        not recycled under it, and a PendingBooking is stored for the user.
        Any failure closes the tab.
        """
        court = court or settings.default_court
        today = local_today()
        try:
            booking_date = normalize_date(target_date, today)
            slot_time = normalize_time(requested_time)
        except ValueError as e:
            return BookingOutcome(kind=OutcomeKind.INVALID_REQUEST, message=str(e))

        if not settings.rec_email or not settings.rec_password:
            return BookingOutcome(
                kind=OutcomeKind.FAILED,
                message="Rec credentials not configured. Set REC_EMAIL and REC_PASSWORD.",
                state=Phase1State.FAILED.value,
            )

        if await self._has_live_verification(user.id):
            entry = self.registry.get(user.id)
            return BookingOutcome(
                kind=OutcomeKind.VERIFICATION_PENDING,
                message=(
                    "A booking is already waiting for its verification code. "
                    "Submit that code first, or wait for it to expire."
                ),
                data={"ticket": entry.ticket if entry else None},
            )

        state = Phase1State.START
        logger.info(f"[phase1] user {user.id}: {court} {booking_date} {slot_time}")
        try:
            handle = await self.browser_manager.acquire()
        except ResourceUnavailable as e:
            self._transition(user.id, "phase1", state.value, Phase1State.FAILED.value)
            return self._resource_unavailable(e, state=Phase1State.FAILED.value)

        def advance(new: Phase1State) -> None:
            nonlocal state
            self._transition(user.id, "phase1", state.value, new.value)
            state = new

        adapter = self.site_adapter
        page = None
        try:
            page = await handle.new_page()
            async with page.driving():
                await adapter.open_home(page)
                advance(Phase1State.CONNECTED)

                await adapter.login(page, settings.rec_email, settings.rec_password)
                advance(Phase1State.LOGGED_IN)

                await adapter.select_court(page, court)
                advance(Phase1State.RESOURCE_SELECTED)

                await adapter.select_date(page, date.fromisoformat(booking_date), today)
                advance(Phase1State.DATE_SELECTED)

                slots = await adapter.read_available_slots(page)
                if not slot_matches(slot_time, slots):
                    raise SlotUnavailable(slot_time, slots)
                await adapter.select_slot(page, slot_time)
                advance(Phase1State.SLOT_CONFIRMED)

                await adapter.set_duration(page)
                advance(Phase1State.DURATION_SET)

                await adapter.select_participant(page)
                advance(Phase1State.PARTICIPANT_SELECTED)

                await adapter.request_code(page)
                advance(Phase1State.CODE_REQUESTED)

                pending = await booking_records.store_pending(
                    user.id, court, slot_time, booking_date
                )
                self.registry.register(user.id, page.window, pending.ticket)
                page.hold(booking_records.pending_ttl_seconds)
                advance(Phase1State.AWAITING_CODE)
        except SlotUnavailable as e:
            return await self._fail_phase1(
                user, state, page, OutcomeKind.SLOT_UNAVAILABLE, str(e),
                {"available_times": e.available},
            )
        except (BookingError, ValueError) as e:
            return await self._fail_phase1(user, state, page, OutcomeKind.FAILED, str(e))
        except Exception as e:
            logger.exception(f"[phase1] user {user.id}: unexpected error")
            return await self._fail_phase1(
                user, state, page, OutcomeKind.FAILED, f"Unexpected error: {e}"
            )

        return BookingOutcome(
            kind=OutcomeKind.AWAITING_CODE,
            message=messages.awaiting_code_message(pending),
            state=state.value,
            data=pending.model_dump(mode="json"),
        )

    async def _fail_phase1(
        self,
        user: AuthenticatedUser,
        state: Phase1State,
        page: BrowserPage | None,
        kind: OutcomeKind,
        message: str,
        data: dict | None = None,
    ) -> BookingOutcome:
        self._transition(user.id, "phase1", state.value, Phase1State.FAILED.value)
        logger.error(f"[phase1] user {user.id}: failed after {state.value}: {message}")
        await self._close_quietly(page)
        return BookingOutcome(
            kind=kind,
            message=f"Booking failed: {message}",
            state=Phase1State.FAILED.value,
            data={"failed_after": state.value, **(data or {})},
        )

    # ========== PHASE 2 ==========

    async def submit_verification_code(
        self,
        user: AuthenticatedUser,
        code: str,
        ticket: str | None = None,
    ) -> BookingOutcome:
        """
        Phase 2: type the SMS code on the tab left open by Phase 1 and confirm.

        The PendingBooking is deleted only when the site reports success.
        On conflict or timeout the tab stays open for manual inspection.
        """
        code = (code or "").strip()
        if not code:
            return BookingOutcome(kind=OutcomeKind.INVALID_REQUEST, message="A code is required.")

        state = Phase2State.START
        try:
            handle = await self.browser_manager.acquire()
        except ResourceUnavailable as e:
            return self._resource_unavailable(e, state=state.value)

        page = await self.page_locator.locate(handle, user.id)
        if page is None:
            logger.info(f"[phase2] user {user.id}: no verification page found")
            return BookingOutcome(
                kind=OutcomeKind.NO_PENDING_SESSION,
                message=messages.no_pending_session_message(),
                state=state.value,
            )

        entry = self.registry.get(user.id)
        if ticket is not None:
            pending = await booking_records.get_pending(user.id)
            if pending is None or pending.ticket != ticket:
                return BookingOutcome(
                    kind=OutcomeKind.NO_PENDING_SESSION,
                    message=f"No pending verification matches ticket {ticket}.",
                    state=state.value,
                )

        try:
            claimed = self.registry.claim(user.id) if entry is not None else None
        except BookingError as e:
            return BookingOutcome(
                kind=OutcomeKind.VERIFICATION_IN_PROGRESS, message=str(e), state=state.value
            )

        try:
            return await self._complete(user, handle, page, code)
        finally:
            if claimed is not None:
                self.registry.release(user.id)

    async def _complete(
        self,
        user: AuthenticatedUser,
        handle: AutomationHandle,
        page: BrowserPage,
        code: str,
    ) -> BookingOutcome:
        state = Phase2State.START

        def advance(new: Phase2State) -> None:
            nonlocal state
            self._transition(user.id, "phase2", state.value, new.value)
            state = new

        adapter = self.site_adapter
        try:
            async with page.driving():
                page.set_default_timeout(settings.verification_timeout_seconds)
                await adapter.submit_code(page, code)
                advance(Phase2State.CODE_ENTERED)
                advance(Phase2State.CONFIRM_CLICKED)

                succeeded = await adapter.wait_for_confirmation(
                    page, settings.verification_timeout_seconds
                )
                page_text = "" if succeeded else await self._read_text_quietly(page)
        except BookingError as e:
            advance(Phase2State.FAILED)
            return BookingOutcome(
                kind=OutcomeKind.FAILED, message=f"Error: {e}", state=state.value
            )
        except Exception as e:
            logger.exception(f"[phase2] user {user.id}: unexpected error")
            advance(Phase2State.FAILED)
            return BookingOutcome(
                kind=OutcomeKind.FAILED, message=f"Unexpected error: {e}", state=state.value
            )

        if not succeeded:
            if RecDOMSchema.CONFLICT_PHRASE.lower() in page_text.lower():
                advance(Phase2State.RESERVED_CONFLICT)
                return BookingOutcome(
                    kind=OutcomeKind.RESERVED_CONFLICT,
                    message=messages.reserved_conflict_message(),
                    state=state.value,
                )
            advance(Phase2State.TIMEOUT)
            return BookingOutcome(
                kind=OutcomeKind.VERIFICATION_TIMEOUT,
                message=messages.verification_timeout_message(),
                state=state.value,
            )

        advance(Phase2State.SUCCEEDED)
        pending = await booking_records.get_pending(user.id)
        if pending is None:
            logger.error(f"[phase2] user {user.id}: site confirmed but no pending booking found")
            return BookingOutcome(
                kind=OutcomeKind.NO_PENDING_BOOKING,
                message=messages.no_pending_booking_message(user.email),
                state=state.value,
            )

        await booking_records.clear_pending(user.id)
        completed = await booking_records.save_completed(pending, user)
        self.registry.discard(user.id)
        page.release_hold()
        await self._close_quietly(page)
        return BookingOutcome(
            kind=OutcomeKind.BOOKED,
            message=messages.booked_message(completed),
            state=state.value,
            data=completed.model_dump(mode="json"),
        )

    # ========== OTHER OPERATIONS ==========

    async def diagnostic_ping(self) -> BookingOutcome:
        """Launch a throwaway browser, load a known page and report its title."""
        factory = self.browser_manager.driver_factory
        data = {
            "url": DIAGNOSTIC_URL,
            "driver_factory": getattr(factory, "__name__", repr(factory)),
            "remote": bool(settings.selenium_remote_url),
            "headless": settings.browser_headless,
            "shared_browser_live": self.browser_manager.handle is not None,
        }
        handle = None
        try:
            driver = await asyncio.to_thread(factory)
            handle = AutomationHandle(driver, ttl_seconds=DIAGNOSTIC_TIMEOUT_SECONDS)
            page = await handle.new_page()
            await page.goto(DIAGNOSTIC_URL, timeout=DIAGNOSTIC_TIMEOUT_SECONDS)
            data["title"] = await page.title()
            data["success"] = True
            message = f"Browser works. Loaded {DIAGNOSTIC_URL}: {data['title']!r}"
        except Exception as e:
            logger.error(f"Browser diagnostic failed: {e}")
            data["success"] = False
            data["error"] = str(e)
            message = f"Browser diagnostic failed: {e}. {ResourceUnavailable.hint}"
        finally:
            if handle is not None:
                await handle.close()
        return BookingOutcome(kind=OutcomeKind.DIAGNOSTIC, message=message, data=data)

    async def get_history(self, user: AuthenticatedUser, days: int | None = None) -> BookingOutcome:
        days = days or settings.history_default_days
        try:
            bookings = await booking_records.get_history(user.email, days, local_today())
        except Exception as e:
            logger.error(f"Error reading booking history for {user.email}: {e}")
            return BookingOutcome(kind=OutcomeKind.FAILED, message=f"Error: {e}")
        return BookingOutcome(
            kind=OutcomeKind.HISTORY,
            message=messages.history_message(bookings, days),
            data={"days": days, "bookings": [b.model_dump(mode="json") for b in bookings]},
        )

    async def shutdown(self) -> None:
        await self.browser_manager.teardown()


booking_service = BookingService()
