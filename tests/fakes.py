"""
Test doubles for the browser layer.

FakeDriver stands in for a Selenium WebDriver (windows, elements, page loads).
FakeSiteAdapter stands in for RecParkSiteAdapter with scripted results, and
FakeBrowserManager hands out a real AutomationHandle built on a FakeDriver.
"""

import itertools
from datetime import date

from selenium.common.exceptions import (
    NoSuchWindowException,
    StaleElementReferenceException,
    TimeoutException,
)
from selenium.webdriver.remote.webelement import WebElement

from courtbook.providers.base import CourtSiteAdapter, StepTimeouts
from courtbook.providers.browser import AutomationHandle, BrowserPage
from courtbook.providers.errors import BookingError, NavigationTimeout, ResourceUnavailable


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


_element_ids = itertools.count(1)


class FakeElement(WebElement):
    """
    WebElement whose state is set by the test, so selenium's expected
    conditions accept it.

    `stale_clicks` makes that many clicks fail as if React had re-rendered
    the element.
    """

    def __init__(
        self, text: str = "", displayed: bool = True, enabled: bool = True, stale_clicks: int = 0
    ) -> None:
        super().__init__(parent=None, id_=f"fake-{next(_element_ids)}")
        self._text = text
        self.displayed = displayed
        self.enabled = enabled
        self.stale_clicks = stale_clicks
        self.clicks = 0
        self.value = ""

    def __repr__(self) -> str:
        return f"FakeElement({self._text!r})"

    @property
    def text(self) -> str:
        return self._text

    def is_displayed(self) -> bool:
        return self.displayed

    def is_enabled(self) -> bool:
        return self.enabled

    def click(self) -> None:
        if self.stale_clicks:
            self.stale_clicks -= 1
            raise StaleElementReferenceException("element is not attached to the page document")
        self.clicks += 1

    def clear(self) -> None:
        self.value = ""

    def send_keys(self, value: str) -> None:
        self.value += value


class FakeSwitchTo:
    def __init__(self, driver: "FakeDriver") -> None:
        self._driver = driver

    def window(self, window: str) -> None:
        if window not in self._driver.window_handles:
            raise NoSuchWindowException(f"no such window: {window}")
        self._driver.current_window_handle = window

    def new_window(self, kind: str = "tab") -> None:
        window = f"W{next(self._driver._ids)}"
        self._driver.window_handles.append(window)
        self._driver.elements[window] = {}
        self._driver.body[window] = ""
        self._driver.current_window_handle = window


class FakeDriver:
    """
    Minimal WebDriver: each window has its own elements, keyed by locator value,
    and its own body text.
    """

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self.window_handles = ["W0"]
        self.current_window_handle = "W0"
        self.elements: dict[str, dict[str, list[FakeElement]]] = {"W0": {}}
        self.body: dict[str, str] = {"W0": ""}
        self.visited: list[tuple[str, str]] = []
        self.title = "Example Domain"
        self.load_times_out = False
        self.quit_called = False
        self.switch_to = FakeSwitchTo(self)

    def set_page_load_timeout(self, seconds: float) -> None:
        self.page_load_timeout = seconds

    def get(self, url: str) -> None:
        if self.load_times_out:
            raise TimeoutException("page load timed out")
        self.visited.append((self.current_window_handle, url))

    def find_elements(self, by: str, value: str) -> list[FakeElement]:
        return self.elements[self.current_window_handle].get(value, [])

    def find_element(self, by: str, value: str) -> FakeElement:
        return FakeElement(text=self.body[self.current_window_handle])

    def close(self) -> None:
        window = self.current_window_handle
        self.window_handles.remove(window)
        del self.elements[window]

    def quit(self) -> None:
        self.quit_called = True

    def put(self, window: str, value: str, *elements: FakeElement) -> None:
        self.elements[window][value] = list(elements)


class FakeSiteAdapter(CourtSiteAdapter):
    """
    Records every call and lets a test choose slots, failures and the
    verification result.
    """

    def __init__(self) -> None:
        self.timeouts = StepTimeouts()
        self.calls: list[str] = []
        self.slots = ["9:00 AM", "3:00 PM", "5:00 PM"]
        self.fail_on: str | None = None
        self.confirmed = True
        self.page_text = ""
        self.prompt_windows: set[str] = set()
        self.raising_windows: set[str] = set()
        self.selected_date: tuple[date, date] | None = None
        self.submitted_code: str | None = None

    async def _step(self, name: str, page: BrowserPage) -> None:
        self.calls.append(name)
        if self.fail_on == name:
            raise NavigationTimeout(name, "signal did not appear within 1s")

    async def open_home(self, page):
        await self._step("open_home", page)

    async def login(self, page, email, password):
        await self._step("login", page)

    async def select_court(self, page, court, wait_for_heading=False):
        await self._step("select_court", page)

    async def select_date(self, page, target, reference):
        self.selected_date = (target, reference)
        await self._step("select_date", page)

    async def read_available_slots(self, page):
        await self._step("read_available_slots", page)
        return list(self.slots)

    async def select_slot(self, page, slot_time):
        await self._step("select_slot", page)

    async def set_duration(self, page):
        await self._step("set_duration", page)

    async def select_participant(self, page):
        await self._step("select_participant", page)

    async def request_code(self, page):
        await self._step("request_code", page)
        self.prompt_windows.add(page.window)

    async def has_code_prompt(self, page):
        if page.window in self.raising_windows:
            raise BookingError("tab crashed")
        return page.window in self.prompt_windows

    async def submit_code(self, page, code):
        self.submitted_code = code
        await self._step("submit_code", page)

    async def wait_for_confirmation(self, page, timeout):
        self.calls.append("wait_for_confirmation")
        return self.confirmed

    async def read_page_text(self, page):
        return self.page_text


class FakeBrowserManager:
    """Hands out one AutomationHandle over a FakeDriver, like BrowserManager."""

    def __init__(self, unavailable: bool = False) -> None:
        self.driver = FakeDriver()
        self.unavailable = unavailable
        self._handle: AutomationHandle | None = None
        self.acquire_count = 0

    def driver_factory(self) -> FakeDriver:
        return FakeDriver()

    @property
    def handle(self) -> AutomationHandle | None:
        return self._handle

    async def acquire(self) -> AutomationHandle:
        self.acquire_count += 1
        if self.unavailable:
            raise ResourceUnavailable("Browser initialization failed: chromedriver not found")
        if self._handle is None:
            self._handle = AutomationHandle(self.driver, ttl_seconds=300)
        return self._handle

    async def teardown(self) -> None:
        if self._handle is not None:
            await self._handle.close()
            self._handle = None
