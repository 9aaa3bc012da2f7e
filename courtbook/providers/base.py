from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date

from courtbook.providers.browser import BrowserPage


@dataclass
class StepTimeouts:
    """Upper bounds, in seconds, for each signal the booking flow waits on."""

    connect: float = 20.0
    login_prompt: float = 10.0
    email_field: float = 8.0
    court_link: float = 10.0
    date_picker: float = 5.0
    slot_list: float = 8.0
    duration: float = 5.0
    code_prompt: float = 8.0


class CourtSiteAdapter(ABC):
    """
    Abstract base class for court reservation sites.

    Each operation drives one step of the site's booking UI on an open page and
    raises a BookingError subclass when the step cannot be completed.
    """

    timeouts: StepTimeouts

    @abstractmethod
    async def open_home(self, page: BrowserPage) -> None:
        """Load the site's landing page."""
        pass

    @abstractmethod
    async def login(self, page: BrowserPage, email: str, password: str) -> None:
        pass

    @abstractmethod
    async def select_court(
        self, page: BrowserPage, court: str, wait_for_heading: bool = False
    ) -> None:
        """Open the reservation page of the named court, optionally waiting for its heading."""
        pass

    @abstractmethod
    async def select_date(self, page: BrowserPage, target: date, reference: date) -> None:
        """Pick `target` in the date picker, which opens on the `reference` month."""
        pass

    @abstractmethod
    async def read_available_slots(self, page: BrowserPage) -> list[str]:
        """Free slots for the selected date, as displayed by the site."""
        pass

    @abstractmethod
    async def select_slot(self, page: BrowserPage, slot_time: str) -> None:
        pass

    @abstractmethod
    async def set_duration(self, page: BrowserPage) -> None:
        pass

    @abstractmethod
    async def select_participant(self, page: BrowserPage) -> None:
        pass

    @abstractmethod
    async def request_code(self, page: BrowserPage) -> None:
        """Ask the site to send the SMS verification code and wait for its prompt."""
        pass

    @abstractmethod
    async def has_code_prompt(self, page: BrowserPage) -> bool:
        """Whether the page is showing the verification code input."""
        pass

    @abstractmethod
    async def submit_code(self, page: BrowserPage, code: str) -> None:
        """Type the code and confirm the reservation."""
        pass

    @abstractmethod
    async def wait_for_confirmation(self, page: BrowserPage, timeout: float) -> bool:
        """True if the site reports success within `timeout` seconds."""
        pass

    @abstractmethod
    async def read_page_text(self, page: BrowserPage) -> str:
        pass
