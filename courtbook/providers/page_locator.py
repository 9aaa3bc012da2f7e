"""
Finding the browser tab that is waiting for a user's verification code.

Phase 1 of a booking leaves its tab open at the site's code prompt and records
it in the VerificationRegistry. Phase 2 runs in a later request and asks the
PageLocator for that tab: the registered one if it still shows the prompt,
otherwise any open tab that does.
"""

import logging
import time as time_module
from dataclasses import dataclass, field

from courtbook.providers.base import CourtSiteAdapter
from courtbook.providers.browser import AutomationHandle, BrowserPage
from courtbook.providers.errors import VerificationInProgress

logger = logging.getLogger(__name__)


@dataclass
class RegisteredPage:
    user_id: str
    window: str
    ticket: str
    registered_at: float = field(default_factory=time_module.monotonic)
    claimed: bool = False


class VerificationRegistry:
    """User id -> the tab holding that user's pending verification."""

    def __init__(self) -> None:
        self._entries: dict[str, RegisteredPage] = {}

    def register(self, user_id: str, window: str, ticket: str) -> RegisteredPage:
        entry = RegisteredPage(user_id=user_id, window=window, ticket=ticket)
        self._entries[user_id] = entry
        logger.info(f"Registered tab {window} for user {user_id} (ticket {ticket})")
        return entry

    def get(self, user_id: str) -> RegisteredPage | None:
        return self._entries.get(user_id)

    def owner_of(self, window: str) -> str | None:
        for entry in self._entries.values():
            if entry.window == window:
                return entry.user_id
        return None

    def claim(self, user_id: str) -> RegisteredPage | None:
        """
        Mark the user's tab as being driven by a code submission.

        Returns None when the user has no registered tab.

        Raises:
            VerificationInProgress: If another submission already holds the claim.
        """
        entry = self._entries.get(user_id)
        if entry is None:
            return None
        if entry.claimed:
            raise VerificationInProgress(
                "A verification code is already being submitted for this booking. "
                "Wait for it to finish."
            )
        entry.claimed = True
        return entry

    def release(self, user_id: str) -> None:
        entry = self._entries.get(user_id)
        if entry is not None:
            entry.claimed = False

    def discard(self, user_id: str) -> None:
        if self._entries.pop(user_id, None) is not None:
            logger.info(f"Discarded registered tab for user {user_id}")


class PageLocator:
    """Resolves the tab on which a user's code should be typed."""

    def __init__(self, site_adapter: CourtSiteAdapter, registry: VerificationRegistry) -> None:
        self.site_adapter = site_adapter
        self.registry = registry

    async def _shows_prompt(self, page: BrowserPage) -> bool:
        if page.is_closed:
            return False
        try:
            return await self.site_adapter.has_code_prompt(page)
        except Exception as e:
            logger.debug(f"Tab {page.window} could not be inspected: {e}")
            return False

    async def locate(self, handle: AutomationHandle, user_id: str) -> BrowserPage | None:
        """
        Return the tab waiting for `user_id`'s code, or None.

        Tabs registered to other users are never returned.
        """
        entry = self.registry.get(user_id)
        if entry is not None:
            page = handle.page_for(entry.window)
            if page is not None and await self._shows_prompt(page):
                return page
            logger.warning(f"Registered tab {entry.window} for user {user_id} is gone; scanning")

        for page in await handle.pages():
            owner = self.registry.owner_of(page.window)
            if owner is not None and owner != user_id:
                continue
            if await self._shows_prompt(page):
                logger.info(f"Found code prompt on tab {page.window}")
                return page
        return None
