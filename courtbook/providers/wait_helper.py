"""
Wait strategy helper for the settle delays between UI steps.

The reservation site is a React app that re-renders after most clicks, so the
booking flow pauses briefly between steps. How long it pauses is configured
via the WAIT_MODE environment variable.

Three modes are supported:
- FIXED: Sleep the full settle duration (most reliable, slowest)
- EVENT_DRIVEN: Skip settle delays and rely on element waits only (fastest)
- HYBRID: Sleep a small buffer instead of the full duration (balanced)

All pauses are asyncio sleeps, so they never block the event loop.
"""

import asyncio
import logging

from courtbook.config import WaitMode, settings

logger = logging.getLogger(__name__)

HYBRID_BUFFER_SECONDS = 0.3


class WaitStrategy:
    """
    Provides pause methods that behave differently based on the configured wait mode.

    Usage:
        wait_strategy = WaitStrategy()
        await wait_strategy.pause(2.0)
    """

    def __init__(self, mode: WaitMode | None = None) -> None:
        """
        Initialize the wait strategy.

        Args:
            mode: The wait mode to use. If None, uses the configured setting.
        """
        self.mode = mode or settings.wait_mode
        logger.info(f"WaitStrategy initialized with mode: {self.mode.value}")

    def settle_duration(self, fixed_duration: float, event_driven_duration: float = 0.0) -> float:
        """Return how long a pause of `fixed_duration` lasts in the current mode."""
        if self.mode == WaitMode.FIXED:
            return fixed_duration
        if self.mode == WaitMode.EVENT_DRIVEN:
            return event_driven_duration
        return min(fixed_duration, HYBRID_BUFFER_SECONDS)

    async def pause(self, fixed_duration: float, event_driven_duration: float = 0.0) -> None:
        """
        Pause after an action so the page can settle.

        Args:
            fixed_duration: Duration to sleep in FIXED mode
            event_driven_duration: Duration to sleep in EVENT_DRIVEN mode (default 0)
        """
        duration = self.settle_duration(fixed_duration, event_driven_duration)
        if duration <= 0:
            logger.debug(f"{self.mode.value} mode: skipping settle pause")
            return
        logger.debug(f"{self.mode.value} mode: settle pause {duration}s")
        await asyncio.sleep(duration)


def get_wait_strategy(mode: WaitMode | None = None) -> WaitStrategy:
    """
    Factory function to get a WaitStrategy instance.

    Args:
        mode: Optional wait mode override. If None, uses configured setting.

    Returns:
        A WaitStrategy instance configured with the specified mode.
    """
    return WaitStrategy(mode)
