from __future__ import annotations

import random
from typing import Callable, Optional, TypeVar

from playwright.sync_api import Page


T = TypeVar("T")

# Bounds of the pause around every simulated action.
HUMANIZE_MIN_MS = 500
HUMANIZE_MAX_MS = 1500


class Humanizer:
    """
    Insert a random pause before and after each simulated user action (typing, clicking, checking) so the
    interaction timing looks less like a script to the site's bot detection.
    """

    def __init__(self, rng: Optional[random.Random] = None) -> None:
        self._rng = rng or random.Random()

    def sample_ms(self) -> int:
        # randint is inclusive on both ends: uniform over [500, 1500].
        return self._rng.randint(HUMANIZE_MIN_MS, HUMANIZE_MAX_MS)

    def pause(self, page: Page) -> int:
        delay = self.sample_ms()
        page.wait_for_timeout(delay)
        return delay

    def perform(self, page: Page, action: Callable[[], T]) -> T:
        self.pause(page)
        result = action()
        self.pause(page)
        return result
