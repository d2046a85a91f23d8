from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar

from playwright.sync_api import Page
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError


T = TypeVar("T")


@dataclass(frozen=True)
class WaitResult(Generic[T]):
    """
    Outcome of one bounded wait.

    Timeouts are expected on this site (slow renders, markup drift) so they come back as a value instead of an
    exception. Any other Playwright error still propagates.
    """

    value: Optional[T] = None
    timed_out: bool = False
    timeout_ms: int = 0
    error: str = ""

    @property
    def ok(self) -> bool:
        return not self.timed_out


def navigate(page: Page, url: str, *, timeout_ms: int) -> WaitResult[Any]:
    """`page.goto` until network idle, bounded by `timeout_ms`."""
    try:
        response = page.goto(url, wait_until="networkidle", timeout=timeout_ms)
    except PlaywrightTimeoutError as e:
        return WaitResult(timed_out=True, timeout_ms=timeout_ms, error=str(e))
    return WaitResult(value=response, timeout_ms=timeout_ms)


def wait_for_network_idle(page: Page, *, timeout_ms: int) -> WaitResult[None]:
    try:
        page.wait_for_load_state("networkidle", timeout=timeout_ms)
    except PlaywrightTimeoutError as e:
        return WaitResult(timed_out=True, timeout_ms=timeout_ms, error=str(e))
    return WaitResult(timeout_ms=timeout_ms)


def wait_for_visible(page: Page, selector: str, *, timeout_ms: int) -> WaitResult[Any]:
    try:
        handle = page.wait_for_selector(selector, state="visible", timeout=timeout_ms)
    except PlaywrightTimeoutError as e:
        return WaitResult(timed_out=True, timeout_ms=timeout_ms, error=str(e))
    if handle is None:
        # Only possible for hidden/detached states, but keep the contract explicit.
        return WaitResult(timed_out=True, timeout_ms=timeout_ms, error=f"no element for {selector!r}")
    return WaitResult(value=handle, timeout_ms=timeout_ms)


def current_url(page: Page) -> str:
    try:
        return page.url or ""
    except Exception:
        return ""
