import logging
import re
from datetime import date

from selenium.webdriver.common.by import By

from courtbook.config import settings
from courtbook.providers.base import CourtSiteAdapter, StepTimeouts
from courtbook.providers.browser import BrowserPage
from courtbook.providers.errors import NavigationTimeout
from courtbook.providers.rec_dom_schema import (
    RecDOMSchema,
    button_named_xpath,
    day_selector,
    month_offset,
    parse_slot_lines,
    slot_label_matches,
    slot_list_xpath,
    text_xpath,
)
from courtbook.providers.wait_helper import WaitStrategy, get_wait_strategy

logger = logging.getLogger(__name__)

# The site renders the apostrophe either straight or curly.
SUCCESS_PATTERN = re.compile(r"You['’]re all set!")


def _text(text: str) -> tuple[str, str]:
    return (By.XPATH, text_xpath(text))


def _css(selector: str) -> tuple[str, str]:
    return (By.CSS_SELECTOR, selector)


class RecParkSiteAdapter(CourtSiteAdapter):
    """
    Drives the SF Rec & Park tennis reservation UI on rec.us.

    The booking flow on the site:
    1. Log in with the account owner's e-mail and password
    2. Open the court's reservation page
    3. Pick the date in the react-datepicker calendar
    4. Pick a free slot, a duration and the participant
    5. Request the SMS code, then type it and confirm

    Most controls carry no stable ids, so they are located by their visible
    text (see rec_dom_schema). Settle pauses between steps follow the
    configured WaitStrategy; every wait for a page signal is bounded by
    StepTimeouts.
    """

    DEFAULT_TIMEOUT_SECONDS = 12.0

    def __init__(
        self,
        base_url: str | None = None,
        timeouts: StepTimeouts | None = None,
        wait_strategy: WaitStrategy | None = None,
    ) -> None:
        self.base_url = base_url or settings.rec_base_url
        self.timeouts = timeouts or StepTimeouts()
        self.wait_strategy = wait_strategy or get_wait_strategy()

    async def open_home(self, page: BrowserPage) -> None:
        page.set_default_timeout(self.DEFAULT_TIMEOUT_SECONDS)
        logger.debug(f"Loading {self.base_url}")
        await page.goto(self.base_url, timeout=self.timeouts.connect, step="connect")
        await self.wait_strategy.pause(2.0)

    async def login(self, page: BrowserPage, email: str, password: str) -> None:
        await page.click(
            _text(RecDOMSchema.LOGIN_LINK_TEXT), timeout=self.timeouts.login_prompt, step="login"
        )
        await page.wait_for(
            _css(RecDOMSchema.EMAIL_INPUT), timeout=self.timeouts.email_field, step="login"
        )
        await page.fill(_css(RecDOMSchema.EMAIL_INPUT), email, step="login")
        await page.fill(_css(RecDOMSchema.PASSWORD_INPUT), password, step="login")
        await page.click(_text(RecDOMSchema.LOGIN_SUBMIT_TEXT), step="login")
        await self.wait_strategy.pause(3.0)

    async def select_court(
        self, page: BrowserPage, court: str, wait_for_heading: bool = False
    ) -> None:
        await page.click(_text(court), timeout=self.timeouts.court_link, step="select court")
        if wait_for_heading:
            await page.wait_for(
                _text(RecDOMSchema.COURT_RESERVATIONS_TEXT),
                timeout=self.timeouts.date_picker,
                step="select court",
            )
        await self.wait_strategy.pause(2.0)

    async def select_date(self, page: BrowserPage, target: date, reference: date) -> None:
        offset = month_offset(target, reference)

        await page.click(_css(RecDOMSchema.DATE_INPUT), step="select date")
        await page.wait_for(
            _css(RecDOMSchema.DATE_PICKER), timeout=self.timeouts.date_picker, step="select date"
        )
        await self.wait_strategy.pause(1.0)

        for _ in range(offset):
            await page.click(
                (By.XPATH, button_named_xpath(RecDOMSchema.DATE_PICKER_NEXT_NAME)),
                timeout=self.timeouts.date_picker,
                step="select date",
            )
            await self.wait_strategy.pause(0.5)

        await page.click(
            _css(day_selector(target.day)), timeout=self.timeouts.date_picker, step="select date"
        )
        await self.wait_strategy.pause(1.5)
        logger.debug(f"Picked {target.isoformat()} ({offset} month(s) ahead)")

    async def read_available_slots(self, page: BrowserPage) -> list[str]:
        await page.wait_for_text(
            RecDOMSchema.SLOTS_LOADED_PATTERN, timeout=self.timeouts.slot_list, step="read slots"
        )
        text = await page.element_text(
            (By.XPATH, slot_list_xpath()), timeout=self.timeouts.slot_list, step="read slots"
        )
        slots = parse_slot_lines(text)
        logger.debug(f"Found {len(slots)} free slot(s)")
        return slots

    async def select_slot(self, page: BrowserPage, slot_time: str) -> None:
        await page.click(
            _text(slot_time),
            step="select slot",
            matching=lambda text: slot_label_matches(text, slot_time),
        )

    async def set_duration(self, page: BrowserPage) -> None:
        await page.click((By.XPATH, RecDOMSchema.DURATION_BUTTON_XPATH), step="set duration")
        await page.wait_for(
            _text(RecDOMSchema.DURATION_READY_TEXT),
            timeout=self.timeouts.duration,
            step="set duration",
        )
        await page.click(_css(RecDOMSchema.DURATION_OPTION), step="set duration")

    async def select_participant(self, page: BrowserPage) -> None:
        await page.click(_text(RecDOMSchema.PARTICIPANT_PICKER_TEXT), step="select participant")
        await page.click(_text(RecDOMSchema.ACCOUNT_OWNER_TEXT), step="select participant")

    async def request_code(self, page: BrowserPage) -> None:
        await page.click(_css(RecDOMSchema.BOOK_BUTTON), step="request code")
        await page.click(_text(RecDOMSchema.SEND_CODE_TEXT), step="request code")
        await self.wait_strategy.pause(2.0)
        await page.wait_for(
            _css(RecDOMSchema.CODE_INPUT),
            timeout=self.timeouts.code_prompt,
            step="request code",
            visible=True,
        )

    async def has_code_prompt(self, page: BrowserPage) -> bool:
        return await page.is_present(_css(RecDOMSchema.CODE_INPUT), visible=True)

    async def submit_code(self, page: BrowserPage, code: str) -> None:
        await page.type(_css(RecDOMSchema.CODE_INPUT), code, step="enter code")
        # The modal keeps an earlier Confirm button underneath the code prompt.
        await page.click(_text(RecDOMSchema.CONFIRM_TEXT), step="confirm", last=True)

    async def wait_for_confirmation(self, page: BrowserPage, timeout: float) -> bool:
        try:
            await page.wait_for_text(SUCCESS_PATTERN, timeout=timeout, step="verification")
        except NavigationTimeout:
            return False
        return True

    async def read_page_text(self, page: BrowserPage) -> str:
        return await page.body_text()
