from __future__ import annotations

import logging
from typing import Callable, Optional

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import Page
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from ..config import TimeoutsConfig
from ..diagnostics import Diagnostics
from ..errors import AuthenticationError, AuthFailureReason
from ..models import Credentials
from .humanize import Humanizer
from .selectors import LoginSelectors
from .waits import current_url, navigate, wait_for_visible


logger = logging.getLogger(__name__)


class SessionAuthenticator:
    """
    Drive the GaggleAMP sign-in UI (email -> continue -> password -> submit) to an authenticated page.

    The login form is treated as an opaque multi-step UI. Nothing here retries: a missing element means the
    markup changed and needs a human, and whole-run retries belong to the scheduler that invokes us.
    """

    def __init__(
        self,
        *,
        sign_in_url: str,
        selectors: Optional[LoginSelectors] = None,
        timeouts: Optional[TimeoutsConfig] = None,
        humanizer: Optional[Humanizer] = None,
        diagnostics: Optional[Diagnostics] = None,
    ) -> None:
        self.sign_in_url = sign_in_url
        self.selectors = selectors or LoginSelectors()
        self.timeouts = timeouts or TimeoutsConfig()
        self.humanizer = humanizer or Humanizer()
        self.diagnostics = diagnostics or Diagnostics()

    def authenticate(self, page: Page, creds: Credentials) -> None:
        """
        Return with `page` positioned on the post-login page, or raise `AuthenticationError`.
        """
        sel = self.selectors
        t = self.timeouts

        logger.info("Navigating to sign-in page (%s)", self.sign_in_url)
        try:
            nav = navigate(page, self.sign_in_url, timeout_ms=t.navigation_ms)
        except PlaywrightError as e:
            raise self._fail(page, AuthFailureReason.NAVIGATION_FAILED, "navigate", f"Sign-in page unreachable: {e}") from e
        if not nav.ok:
            raise self._fail(
                page,
                AuthFailureReason.NAVIGATION_TIMEOUT,
                "navigate",
                f"Sign-in page did not settle within {t.navigation_ms / 1000:.0f}s",
            )
        self.diagnostics.step(page, "sign_in_loaded")

        logger.info("Starting login process")
        self._require_visible(page, sel.identity_input, step="identity")
        self._act(page, "identity", lambda: page.fill(sel.identity_input, creds.identity))
        self.diagnostics.step(page, "identity_filled")

        def _continue() -> None:
            self._require_visible(page, sel.continue_button, step="continue")
            page.click(sel.continue_button, timeout=t.login_element_ms)

        self._act(page, "continue", _continue)

        self._require_visible(page, sel.secret_input, step="secret")
        self._act(page, "secret", lambda: page.fill(sel.secret_input, creds.secret))
        self.diagnostics.step(page, "secret_filled")
        self._act(page, "submit", lambda: page.click(sel.submit_button, timeout=t.login_element_ms))

        logger.info("Waiting for post-login page (up to %.0fs)...", t.confirmation_ms / 1000)
        confirmed = wait_for_visible(page, sel.confirmation, timeout_ms=t.confirmation_ms)
        if not confirmed.ok:
            raise self._fail(
                page,
                AuthFailureReason.CONFIRMATION_TIMEOUT,
                "confirmation",
                "Login was not confirmed: post-login element never appeared "
                f"within {t.confirmation_ms / 1000:.0f}s (invalid credentials or a changed sign-in flow)",
            )

        self.diagnostics.step(page, "login_complete")
        logger.info("Login successful!")

    def _require_visible(self, page: Page, selector: str, *, step: str) -> None:
        found = wait_for_visible(page, selector, timeout_ms=self.timeouts.login_element_ms)
        if not found.ok:
            raise self._fail(
                page,
                AuthFailureReason.ELEMENT_NOT_FOUND,
                step,
                f"Login element {selector!r} not visible within {self.timeouts.login_element_ms}ms",
            )

    def _act(self, page: Page, step: str, action: Callable[[], None]) -> None:
        try:
            self.humanizer.perform(page, action)
        except AuthenticationError:
            raise
        except PlaywrightTimeoutError as e:
            raise self._fail(page, AuthFailureReason.ELEMENT_NOT_FOUND, step, f"Timed out during {step}: {e}") from e
        except PlaywrightError as e:
            raise self._fail(page, AuthFailureReason.INTERACTION_FAILED, step, f"Browser rejected {step}: {e}") from e

    def _fail(self, page: Page, reason: AuthFailureReason, step: str, message: str) -> AuthenticationError:
        url = current_url(page)
        # Never include credential values here; messages only name selectors and steps.
        logger.error("Authentication failed at step=%s reason=%s url=%s: %s", step, reason.value, url, message)
        return AuthenticationError(reason, message, step=step, url=url)
