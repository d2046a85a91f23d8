from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import Page

from ..config import TimeoutsConfig
from ..diagnostics import Diagnostics
from ..models import ActionOutcome, PageState
from .humanize import Humanizer
from .selectors import MARKER_PRESETS, DEFAULT_MARKER_PRESET, MarkerSet, MarkerSpec
from .waits import current_url, wait_for_network_idle, wait_for_visible


logger = logging.getLogger(__name__)


# Probe order. The first marker found decides the state, so the empty-state marker is authoritative.
PROBE_ORDER: tuple[tuple[PageState, str], ...] = (
    (PageState.EMPTY, "empty_state"),
    (PageState.ACTIONABLE, "action_trigger"),
)

_NON_ACTIONABLE = {
    PageState.LOADING: ActionOutcome.INDETERMINATE,
    PageState.INDETERMINATE: ActionOutcome.INDETERMINATE,
    PageState.ERRORED: ActionOutcome.INDETERMINATE,
}


@dataclass(frozen=True)
class Classification:
    state: PageState
    detail: str = ""


@dataclass(frozen=True)
class Resolution:
    state: PageState
    outcome: ActionOutcome
    detail: str = ""


class ActivityResolver:
    """
    Classify the post-login activities page and, only when it is actionable, trigger the bulk action once.

    Holds no per-page state: each `resolve()` re-probes the live DOM.
    """

    def __init__(
        self,
        *,
        markers: Optional[MarkerSet] = None,
        timeouts: Optional[TimeoutsConfig] = None,
        humanizer: Optional[Humanizer] = None,
        diagnostics: Optional[Diagnostics] = None,
        debug: bool = False,
    ) -> None:
        self.markers = markers or MARKER_PRESETS[DEFAULT_MARKER_PRESET]
        self.timeouts = timeouts or TimeoutsConfig()
        self.humanizer = humanizer or Humanizer()
        self.diagnostics = diagnostics or Diagnostics()
        self.debug = debug

    def resolve(self, page: Page) -> Resolution:
        logger.info("Starting activities page handling")
        classification = self.classify(page)
        return self.dispatch(page, classification)

    def classify(self, page: Page) -> Classification:
        logger.info("Waiting for network idle state...")
        idle = wait_for_network_idle(page, timeout_ms=self.timeouts.network_idle_ms)
        if not idle.ok:
            # A slow page and an empty page look alike to a naive probe; never report this as empty.
            detail = f"network idle not reached within {idle.timeout_ms}ms"
            logger.error("Page did not settle: %s (url=%s)", detail, current_url(page))
            return Classification(PageState.LOADING, detail)

        if self.debug:
            logger.debug("Network idle achieved, beginning element search...")

        try:
            for state, marker_name in PROBE_ORDER:
                spec: MarkerSpec = getattr(self.markers, marker_name)
                found, evidence = self._probe(page, spec)
                if self.debug:
                    logger.debug("Marker %s: found=%s %s (url=%s)", marker_name, found, evidence, current_url(page))
                if found:
                    return Classification(state, f"{marker_name} matched {spec.selector!r} {evidence}".strip())
        except PlaywrightError as e:
            logger.error("Error while checking for activities (url=%s): %s", current_url(page), e)
            return Classification(PageState.ERRORED, f"probe failed: {e}")

        detail = (
            f"neither empty-state marker {self.markers.empty_state.selector!r} nor action marker "
            f"{self.markers.action_trigger.selector!r} found"
        )
        logger.error(
            "Could not classify activities page: %s. The page markup may have changed; update the marker table. (url=%s)",
            detail,
            current_url(page),
        )
        return Classification(PageState.INDETERMINATE, detail)

    def dispatch(self, page: Page, classification: Classification) -> Resolution:
        state = classification.state
        if state is PageState.EMPTY:
            logger.info("Found 'All Caught Up' marker - no activities to process")
            return Resolution(state, ActionOutcome.NO_ACTION_NEEDED, classification.detail)

        if state is PageState.ACTIONABLE:
            return self._perform_bulk_action(page, classification)

        logger.error("Not dispatching: page state is %s (%s)", state.value, classification.detail)
        return Resolution(state, _NON_ACTIONABLE[state], classification.detail)

    def _perform_bulk_action(self, page: Page, classification: Classification) -> Resolution:
        t = self.timeouts
        trigger = self.markers.action_trigger
        try:
            self._ensure_all_selected(page)

            logger.info("Waiting for bulk schedule button...")
            found = wait_for_visible(page, trigger.selector, timeout_ms=t.action_ms)
            if not found.ok:
                detail = f"action control {trigger.selector!r} not visible within {t.action_ms}ms"
                logger.error("Error clicking bulk schedule button: %s", detail)
                return Resolution(PageState.ACTIONABLE, ActionOutcome.ACTION_FAILED, detail)

            logger.info("Clicking bulk schedule button...")
            self.humanizer.perform(page, lambda: found.value.click(timeout=t.click_ms))
        except Exception as e:
            logger.error("Error clicking bulk schedule button (url=%s): %s", current_url(page), e)
            return Resolution(
                PageState.ACTIONABLE, ActionOutcome.ACTION_FAILED, f"dispatch failed: {type(e).__name__}: {e}"
            )

        self.diagnostics.step(page, "bulk_action_clicked")
        logger.info("Bulk schedule button clicked successfully")
        return Resolution(PageState.ACTIONABLE, ActionOutcome.SUCCESS, classification.detail)

    def _ensure_all_selected(self, page: Page) -> None:
        spec = self.markers.select_all
        if spec is None:
            return
        handle = page.query_selector(spec.selector)
        if handle is None:
            logger.debug("No select-all control on page (%s)", spec.selector)
            return
        if handle.is_checked():
            logger.debug("Select-all control already checked")
            return
        logger.info("Selecting all activities...")
        self.humanizer.perform(page, lambda: handle.check(timeout=self.timeouts.click_ms))

    def _probe(self, page: Page, spec: MarkerSpec) -> tuple[bool, str]:
        handle = page.query_selector(spec.selector)
        if handle is None:
            return False, ""
        for required in spec.requires:
            if page.query_selector(required) is None:
                return False, f"(missing companion {required!r})"

        text = (handle.text_content() or "").strip()
        evidence = f"text={text[:80]!r}" if text else ""
        if self.debug:
            try:
                evidence = f"{evidence} disabled={handle.is_disabled()}".strip()
            except PlaywrightError:
                pass
        if spec.text and spec.text not in text:
            return False, evidence
        return True, evidence
