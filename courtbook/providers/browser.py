"""
Shared headless browser for driving the reservation site.

One Selenium WebDriver is shared by every request handled by this process.
Creating it is slow (several seconds), so BrowserManager keeps it alive and
hands the same AutomationHandle to each caller until its time-to-live expires.

Each browser tab is a BrowserPage. A WebDriver only has one focused window, so
every page command runs under the handle's lock: switch to the tab's window,
then run the blocking Selenium call in a worker thread via asyncio.to_thread().
Waits poll with short lock-held probes and release the lock between probes, so
a long wait on one tab never starves the other tabs.
"""

import asyncio
import functools
import logging
import os
import re
import time as time_module
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import TypeVar

from selenium import webdriver
from selenium.common.exceptions import (
    NoSuchElementException,
    StaleElementReferenceException,
    TimeoutException,
    WebDriverException,
)
from selenium.webdriver.chrome.options import Options
from selenium.webdriver.chrome.service import Service
from selenium.webdriver.common.by import By
from selenium.webdriver.remote.webdriver import WebDriver
from selenium.webdriver.remote.webelement import WebElement
from selenium.webdriver.support import expected_conditions
from selenium.webdriver.support.ui import WebDriverWait
from webdriver_manager.chrome import ChromeDriverManager

from courtbook.config import settings
from courtbook.providers.errors import BookingError, NavigationTimeout, ResourceUnavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")

Locator = tuple[str, str]
DriverFactory = Callable[[], WebDriver]
Clock = Callable[[], float]
TextMatcher = Callable[[str], bool]

# Each lock-held probe waits at most this long before releasing the driver.
PROBE_TIMEOUT_SECONDS = 0.2
PROBE_POLL_SECONDS = 0.05
CLICKABLE_TIMEOUT_SECONDS = 2.0


def create_chrome_driver() -> WebDriver:
    """
    Create a headless Chrome WebDriver instance.

    Uses a remote browser service when SELENIUM_REMOTE_URL is set, otherwise a
    local chromedriver (CHROMEDRIVER_PATH, or one installed by webdriver_manager).
    """
    options = Options()
    if settings.browser_headless:
        options.add_argument("--headless=new")
    options.add_argument("--no-sandbox")
    options.add_argument("--disable-setuid-sandbox")
    options.add_argument("--disable-dev-shm-usage")
    options.add_argument("--disable-gpu")
    options.add_argument("--window-size=1920,1080")
    options.add_argument("--disable-blink-features=AutomationControlled")
    options.add_experimental_option("excludeSwitches", ["enable-automation"])
    options.add_experimental_option("useAutomationExtension", False)
    # Return from get() at DOMContentLoaded; the React app renders afterwards.
    options.page_load_strategy = "eager"

    if settings.selenium_remote_url:
        return webdriver.Remote(command_executor=settings.selenium_remote_url, options=options)

    chromedriver_path = settings.chromedriver_path or os.environ.get("CHROMEDRIVER_PATH")
    if chromedriver_path and os.path.exists(chromedriver_path):
        service = Service(chromedriver_path)
    else:
        service = Service(ChromeDriverManager().install())
    return webdriver.Chrome(service=service, options=options)


def _wait(driver: WebDriver, timeout: float, *ignored: type[Exception]) -> WebDriverWait:
    return WebDriverWait(
        driver,
        timeout,
        poll_frequency=PROBE_POLL_SECONDS,
        ignored_exceptions=(StaleElementReferenceException, *ignored),
    )


def _probe(driver: WebDriver, locator: Locator, visible: bool) -> bool:
    if visible:
        condition = expected_conditions.visibility_of_any_elements_located(locator)
    else:
        condition = expected_conditions.presence_of_all_elements_located(locator)
    try:
        return bool(_wait(driver, PROBE_TIMEOUT_SECONDS).until(condition))
    except TimeoutException:
        return False


def _pick(
    driver: WebDriver,
    locator: Locator,
    last: bool,
    matching: TextMatcher | None = None,
) -> WebElement:
    elements = driver.find_elements(*locator)
    if matching is not None:
        elements = [element for element in elements if matching(element.text)]
    candidates = [
        element for element in elements if expected_conditions.visibility_of(element)(driver)
    ] or elements
    if not candidates:
        raise NoSuchElementException(f"No element matches {locator[1]}")
    return candidates[-1] if last else candidates[0]


def _click(driver: WebDriver, locator: Locator, last: bool, matching: TextMatcher | None) -> None:
    def click_target(d: WebDriver) -> WebElement | bool:
        # Looked up again on every attempt: React may re-render between lookup and click
        element = expected_conditions.element_to_be_clickable(_pick(d, locator, last, matching))(d)
        if element:
            element.click()
        return element

    _wait(driver, CLICKABLE_TIMEOUT_SECONDS, NoSuchElementException).until(click_target)


def _send_keys(driver: WebDriver, locator: Locator, value: str, clear: bool) -> None:
    element = _pick(driver, locator, last=False)
    if clear:
        element.clear()
    element.send_keys(value)


def _element_text(driver: WebDriver, locator: Locator) -> str:
    return _pick(driver, locator, last=False).text


def _body_text(driver: WebDriver) -> str:
    return driver.find_element(By.TAG_NAME, "body").text


class BrowserPage:
    """One tab of an AutomationHandle, addressed by its window handle."""

    POLL_INTERVAL_SECONDS = 0.25
    DEFAULT_TIMEOUT_SECONDS = 12.0

    def __init__(self, handle: "AutomationHandle", window: str) -> None:
        self._handle = handle
        self.window = window
        self.default_timeout = self.DEFAULT_TIMEOUT_SECONDS
        self._driving = 0
        self._hold_until: float | None = None
        self._closed = False

    @property
    def is_closed(self) -> bool:
        return self._closed or self._handle.is_closed

    def mark_closed(self) -> None:
        self._closed = True

    def set_default_timeout(self, seconds: float) -> None:
        """Timeout used by waits and clicks that do not pass their own."""
        self.default_timeout = seconds

    @asynccontextmanager
    async def driving(self) -> AsyncIterator["BrowserPage"]:
        """Mark the page as being driven, which keeps the browser from being replaced."""
        self._driving += 1
        try:
            yield self
        finally:
            self._driving -= 1

    def hold(self, seconds: float) -> None:
        """Keep the browser alive for this page for `seconds`, e.g. while a code is pending."""
        self._hold_until = self._handle.now() + seconds

    def release_hold(self) -> None:
        self._hold_until = None

    def is_busy(self, now: float) -> bool:
        if self.is_closed:
            return False
        return self._driving > 0 or (self._hold_until is not None and self._hold_until > now)

    async def run(self, fn: Callable[[WebDriver], T]) -> T:
        """Run a blocking Selenium callable against this tab."""
        if self.is_closed:
            raise BookingError(f"Page {self.window} is already closed")
        try:
            return await self._handle.run_in_window(self.window, fn)
        except TimeoutException:
            raise
        except WebDriverException as e:
            raise BookingError(f"Browser error: {e.msg or e}") from e

    async def _page_text_quietly(self) -> str | None:
        """Best-effort visible text for error reports; None if it cannot be read."""
        try:
            return await self.body_text()
        except BookingError:
            return None

    async def goto(self, url: str, timeout: float, step: str = "connect") -> None:
        def _navigate(driver: WebDriver) -> None:
            driver.set_page_load_timeout(timeout)
            driver.get(url)

        try:
            await self.run(_navigate)
        except TimeoutException as e:
            raise NavigationTimeout(
                step,
                f"{url} did not load within {timeout:g}s",
                page_text=await self._page_text_quietly(),
            ) from e

    async def is_present(self, locator: Locator, visible: bool = False) -> bool:
        return await self.run(functools.partial(_probe, locator=locator, visible=visible))

    async def wait_for(
        self,
        locator: Locator,
        timeout: float | None = None,
        step: str = "wait",
        visible: bool = False,
    ) -> None:
        """Wait until an element matching `locator` exists (or is visible)."""
        timeout = self.default_timeout if timeout is None else timeout
        deadline = time_module.monotonic() + timeout
        while True:
            if await self.is_present(locator, visible=visible):
                return
            if time_module.monotonic() >= deadline:
                raise NavigationTimeout(
                    step,
                    f"{locator[1]} did not appear within {timeout:g}s",
                    page_text=await self._page_text_quietly(),
                )
            await asyncio.sleep(self.POLL_INTERVAL_SECONDS)

    async def wait_for_text(
        self, pattern: re.Pattern[str], timeout: float | None = None, step: str = "wait"
    ) -> str:
        """Wait until the page's visible text matches `pattern`; returns that text."""
        timeout = self.default_timeout if timeout is None else timeout
        deadline = time_module.monotonic() + timeout
        while True:
            try:
                text = await self.body_text()
            except BookingError:
                if self.is_closed:
                    raise
                text = ""
            if pattern.search(text):
                return text
            if time_module.monotonic() >= deadline:
                raise NavigationTimeout(
                    step,
                    f"text matching {pattern.pattern!r} did not appear within {timeout:g}s",
                    page_text=text or None,
                )
            await asyncio.sleep(self.POLL_INTERVAL_SECONDS)

    async def click(
        self,
        locator: Locator,
        timeout: float | None = None,
        step: str = "click",
        last: bool = False,
        matching: TextMatcher | None = None,
    ) -> None:
        """
        Click the first (or `last`) visible element matching `locator`.

        `matching`, if given, further restricts the candidates by their text.
        """
        await self.wait_for(locator, timeout, step, visible=True)
        try:
            await self.run(
                functools.partial(_click, locator=locator, last=last, matching=matching)
            )
        except TimeoutException as e:
            raise NavigationTimeout(
                step,
                f"{locator[1]} did not become clickable",
                page_text=await self._page_text_quietly(),
            ) from e

    async def fill(
        self, locator: Locator, value: str, timeout: float | None = None, step: str = "fill"
    ) -> None:
        """Replace the value of an input."""
        await self.wait_for(locator, timeout, step, visible=True)
        await self.run(functools.partial(_send_keys, locator=locator, value=value, clear=True))

    async def type(
        self, locator: Locator, value: str, timeout: float | None = None, step: str = "type"
    ) -> None:
        """Type into an input key by key, keeping what is already there."""
        await self.wait_for(locator, timeout, step, visible=True)
        await self.run(functools.partial(_send_keys, locator=locator, value=value, clear=False))

    async def element_text(
        self, locator: Locator, timeout: float | None = None, step: str = "read"
    ) -> str:
        await self.wait_for(locator, timeout, step)
        return await self.run(functools.partial(_element_text, locator=locator))

    async def body_text(self) -> str:
        return await self.run(_body_text)

    async def title(self) -> str:
        return await self.run(lambda driver: driver.title)

    async def close(self) -> None:
        if self.is_closed:
            return
        await self._handle.close_page(self)


class AutomationHandle:
    """
    The shared browser: one WebDriver plus the tabs opened in it.

    Attributes:
        driver: The underlying Selenium WebDriver.
        ttl_seconds: Age after which BrowserManager replaces the handle.
        created_at: Clock reading when the driver was created.
    """

    def __init__(self, driver: WebDriver, ttl_seconds: float, clock: Clock = time_module.monotonic):
        self.driver = driver
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self.created_at = clock()
        self._lock = asyncio.Lock()
        self._pages: dict[str, BrowserPage] = {}
        self._home_window: str | None = None
        self._closed = False

    def now(self) -> float:
        return self._clock()

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def is_live(self) -> bool:
        return not self._closed

    def age(self, now: float | None = None) -> float:
        return (self.now() if now is None else now) - self.created_at

    def is_expired(self, now: float | None = None) -> bool:
        return self.age(now) >= self.ttl_seconds

    def is_busy(self, now: float | None = None) -> bool:
        """True while any tab is being driven or is held open for a pending verification."""
        now = self.now() if now is None else now
        return any(page.is_busy(now) for page in self._pages.values())

    async def run_in_window(self, window: str, fn: Callable[[WebDriver], T]) -> T:
        async with self._lock:
            if self._closed:
                raise BookingError("Browser has been closed")
            return await asyncio.to_thread(self._call_in_window, window, fn)

    def _call_in_window(self, window: str, fn: Callable[[WebDriver], T]) -> T:
        self.driver.switch_to.window(window)
        return fn(self.driver)

    async def new_page(self) -> BrowserPage:
        async with self._lock:
            if self._closed:
                raise BookingError("Browser has been closed")
            try:
                window = await asyncio.to_thread(self._open_tab)
            except WebDriverException as e:
                raise BookingError(f"Could not open a new tab: {e.msg or e}") from e
        page = BrowserPage(self, window)
        self._pages[window] = page
        logger.debug(f"Opened tab {window}")
        return page

    def _open_tab(self) -> str:
        # The first tab stays blank: closing the last tab would end the session.
        if self._home_window is None:
            self._home_window = self.driver.current_window_handle
        self.driver.switch_to.new_window("tab")
        return self.driver.current_window_handle

    def page_for(self, window: str) -> BrowserPage | None:
        page = self._pages.get(window)
        if page is None or page.is_closed:
            return None
        return page

    async def pages(self) -> list[BrowserPage]:
        """All open tabs, including ones this process did not open itself."""
        async with self._lock:
            if self._closed:
                return []
            windows = await asyncio.to_thread(lambda: list(self.driver.window_handles))

        for window, page in list(self._pages.items()):
            if window not in windows:
                page.mark_closed()
                del self._pages[window]

        result = []
        for window in windows:
            if window == self._home_window:
                continue
            page = self._pages.get(window)
            if page is None:
                page = BrowserPage(self, window)
                self._pages[window] = page
            result.append(page)
        return result

    async def close_page(self, page: BrowserPage) -> None:
        async with self._lock:
            if not self._closed:
                try:
                    await asyncio.to_thread(self._close_window, page.window)
                except WebDriverException as e:
                    logger.warning(f"Error closing tab {page.window}: {e.msg or e}")
        page.mark_closed()
        self._pages.pop(page.window, None)

    def _close_window(self, window: str) -> None:
        self.driver.switch_to.window(window)
        self.driver.close()
        if self._home_window is not None:
            self.driver.switch_to.window(self._home_window)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        async with self._lock:
            try:
                await asyncio.to_thread(self.driver.quit)
            except WebDriverException as e:
                logger.error(f"Error during browser cleanup: {e.msg or e}")
        for page in self._pages.values():
            page.mark_closed()
        self._pages.clear()


class BrowserManager:
    """
    Owns the process-wide AutomationHandle.

    acquire() returns the live handle while it is younger than its TTL, and
    otherwise closes it and launches a replacement. Concurrent callers that
    arrive while a launch is in flight join that launch instead of starting
    their own; a failed launch is raised to all of them and cleared so the next
    call tries again.

    An expired handle is kept while one of its tabs is being driven or is held
    at the verification prompt; it is replaced on the first acquire() after it
    goes idle.
    """

    def __init__(
        self,
        driver_factory: DriverFactory | None = None,
        ttl_seconds: float | None = None,
        clock: Clock = time_module.monotonic,
    ) -> None:
        self.driver_factory = driver_factory or create_chrome_driver
        self.ttl_seconds = settings.browser_ttl_seconds if ttl_seconds is None else ttl_seconds
        self._clock = clock
        self._handle: AutomationHandle | None = None
        self._launch: asyncio.Task[AutomationHandle] | None = None
        self._lock = asyncio.Lock()

    @property
    def handle(self) -> AutomationHandle | None:
        """The current handle, if one is live. Never launches a browser."""
        if self._handle is not None and self._handle.is_live:
            return self._handle
        return None

    async def acquire(self) -> AutomationHandle:
        """
        Return a ready-to-use browser handle.

        A handle is normally never reused once it is older than its TTL. That
        rule is relaxed while one of its tabs is being driven or is held at the
        verification prompt: the expired handle is returned as is, for as long
        as the hold lasts (up to PENDING_BOOKING_TTL_SECONDS), so that Phase 2
        can still reach the tab Phase 1 left open.

        Raises:
            ResourceUnavailable: If the browser could not be launched.
        """
        async with self._lock:
            handle = self.handle
            if handle is not None:
                if not handle.is_expired():
                    return handle
                if handle.is_busy():
                    logger.warning(
                        f"Browser is {handle.age():.0f}s old but has active tabs; "
                        "deferring replacement"
                    )
                    return handle
            if self._launch is None:
                self._launch = asyncio.create_task(self._replace(self._handle))
            launch = self._launch
        return await asyncio.shield(launch)

    async def _replace(self, stale: AutomationHandle | None) -> AutomationHandle:
        try:
            if stale is not None:
                logger.info(f"Closing browser after {stale.age():.0f}s")
                await stale.close()
            self._handle = None

            logger.info("Attempting to launch browser...")
            try:
                driver = await asyncio.to_thread(self.driver_factory)
            except Exception as e:
                logger.error(f"Browser initialization failed: {e}")
                raise ResourceUnavailable(f"Browser initialization failed: {e}") from e

            self._handle = AutomationHandle(driver, self.ttl_seconds, self._clock)
            logger.info("Browser launched successfully")
            return self._handle
        finally:
            self._launch = None

    async def teardown(self) -> None:
        """
        Close the browser if there is one and forget it.

        A launch still in flight is waited for first, so its browser is closed
        here rather than left running.
        """
        async with self._lock:
            launch = self._launch
        if launch is not None:
            try:
                await asyncio.shield(launch)
            except ResourceUnavailable as e:
                logger.info(f"Pending browser launch failed during teardown: {e}")
        async with self._lock:
            handle, self._handle = self._handle, None
        if handle is not None:
            logger.info("Tearing down browser")
            await handle.close()
