from __future__ import annotations

from pathlib import Path
from typing import Callable, Optional

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from gaggle_bulk_scheduler.portal.session import AutomatedSession


class FakeElement:
    def __init__(
        self,
        page: "FakePage",
        selector: str,
        *,
        text: str = "",
        checked: bool = False,
        disabled: bool = False,
        click_error: Optional[Exception] = None,
        on_click: Optional[Callable[["FakePage"], None]] = None,
    ) -> None:
        self.page = page
        self.selector = selector
        self.text = text
        self.checked = checked
        self.disabled = disabled
        self.click_error = click_error
        self.on_click = on_click

    def text_content(self) -> str:
        return self.text

    def is_checked(self) -> bool:
        return self.checked

    def is_disabled(self) -> bool:
        return self.disabled

    def check(self, timeout: Optional[float] = None) -> None:
        self.page.calls.append(("check", self.selector))
        self.checked = True

    def click(self, timeout: Optional[float] = None) -> None:
        self.page.calls.append(("click", self.selector))
        if self.click_error is not None:
            raise self.click_error
        if self.on_click is not None:
            self.on_click(self.page)


class FakePage:
    """
    Minimal stand-in for `playwright.sync_api.Page`, covering only the calls the automation makes.

    Every interaction is appended to `calls` so tests can assert order.
    """

    def __init__(
        self,
        *,
        url: str = "about:blank",
        network_idle: bool = True,
        goto_error: Optional[Exception] = None,
        probe_error: Optional[Exception] = None,
    ) -> None:
        self.url = url
        self.network_idle = network_idle
        self.goto_error = goto_error
        self.probe_error = probe_error
        self.elements: dict[str, FakeElement] = {}
        self.filled: dict[str, str] = {}
        self.calls: list[tuple] = []
        self.delays: list[int] = []
        self.screenshots: list[str] = []

    def add(self, selector: str, **kwargs) -> FakeElement:
        el = FakeElement(self, selector, **kwargs)
        self.elements[selector] = el
        return el

    def remove(self, selector: str) -> None:
        self.elements.pop(selector, None)

    def clicks(self) -> list[str]:
        return [c[1] for c in self.calls if c[0] == "click"]

    # Playwright surface

    def goto(self, url: str, wait_until: Optional[str] = None, timeout: Optional[float] = None):
        self.calls.append(("goto", url))
        if self.goto_error is not None:
            raise self.goto_error
        self.url = url
        return None

    def wait_for_load_state(self, state: str = "load", timeout: Optional[float] = None) -> None:
        self.calls.append(("wait_for_load_state", state))
        if not self.network_idle:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded.")

    def wait_for_selector(self, selector: str, state: str = "visible", timeout: Optional[float] = None):
        self.calls.append(("wait_for_selector", selector))
        el = self.elements.get(selector)
        if el is None:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded waiting for {selector}")
        return el

    def query_selector(self, selector: str) -> Optional[FakeElement]:
        if self.probe_error is not None:
            raise self.probe_error
        return self.elements.get(selector)

    def fill(self, selector: str, value: str, timeout: Optional[float] = None) -> None:
        self.calls.append(("fill", selector))
        if selector not in self.elements:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded filling {selector}")
        self.filled[selector] = value

    def click(self, selector: str, timeout: Optional[float] = None) -> None:
        el = self.elements.get(selector)
        if el is None:
            self.calls.append(("click", selector))
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded clicking {selector}")
        el.click(timeout=timeout)

    def wait_for_timeout(self, timeout: float) -> None:
        self.delays.append(int(timeout))

    def screenshot(self, path: Optional[str] = None, full_page: bool = False) -> bytes:
        self.screenshots.append(str(path))
        if path:
            Path(path).parent.mkdir(parents=True, exist_ok=True)
            Path(path).write_bytes(b"png")
        return b"png"

    def content(self) -> str:
        return "<html><body></body></html>"

    def inner_text(self, selector: str) -> str:
        return " ".join(el.text for el in self.elements.values() if el.text)


class FakeContext:
    def __init__(self, page: Optional[FakePage] = None) -> None:
        self.page = page or FakePage()
        self.close_count = 0

    def new_page(self) -> FakePage:
        return self.page

    def close(self) -> None:
        self.close_count += 1


class FakeBrowser:
    def __init__(
        self,
        *,
        close_error: Optional[Exception] = None,
        new_context_error: Optional[Exception] = None,
    ) -> None:
        self.close_count = 0
        self.close_error = close_error
        self.new_context_error = new_context_error
        self.contexts: list[FakeContext] = []
        self.context_kwargs: list[dict] = []

    def new_context(self, **kwargs) -> FakeContext:
        self.context_kwargs.append(kwargs)
        if self.new_context_error is not None:
            raise self.new_context_error
        ctx = FakeContext()
        self.contexts.append(ctx)
        return ctx

    def close(self) -> None:
        self.close_count += 1
        if self.close_error is not None:
            raise self.close_error


class FakeChromium:
    """
    `playwright.chromium` stand-in. `missing_bundled` makes the channel-less launch fail the way Playwright does
    when its browser cache is empty.
    """

    def __init__(self, *, missing_bundled: bool = False, launch_error: Optional[Exception] = None) -> None:
        self.missing_bundled = missing_bundled
        self.launch_error = launch_error
        self.launches: list[dict] = []
        self.browsers: list[FakeBrowser] = []
        self.browser_kwargs: dict = {}

    def launch(self, **kwargs) -> FakeBrowser:
        self.launches.append(kwargs)
        if self.launch_error is not None:
            raise self.launch_error
        if self.missing_bundled and "channel" not in kwargs:
            raise PlaywrightError("Executable doesn't exist at /ms-playwright/chromium/chrome")
        browser = FakeBrowser(**self.browser_kwargs)
        self.browsers.append(browser)
        return browser


class FakePlaywright:
    """Replacement for `sync_playwright()`: a context manager that records whether it was stopped."""

    def __init__(self, chromium: Optional[FakeChromium] = None) -> None:
        self.chromium = chromium or FakeChromium()
        self.stopped = False

    def __call__(self) -> "FakePlaywright":
        return self

    def __enter__(self) -> "FakePlaywright":
        return self

    def __exit__(self, *exc) -> None:
        self.stopped = True


class FakeSessionFactory:
    """
    Session factory for `WorkflowRunner` that hands out `AutomatedSession`s over fake browser objects.
    """

    def __init__(self, page: FakePage, *, browser_close_error: Optional[Exception] = None) -> None:
        self.page = page
        self.browser_close_error = browser_close_error
        self.browsers: list[FakeBrowser] = []
        self.contexts: list[FakeContext] = []

    def __call__(self) -> AutomatedSession:
        browser = FakeBrowser(close_error=self.browser_close_error)
        context = FakeContext()
        self.browsers.append(browser)
        self.contexts.append(context)
        return AutomatedSession(browser=browser, context=context, page=self.page)


SIGN_IN_URL = "https://accounts.gaggleamp.com/sign_in"
BULK_BUTTON = 'button[data-action="click->ga3--widgets--bulk-schedule#bulkSchedule"]'


def add_login_form(page: FakePage, *, confirmed: bool = True) -> None:
    page.add("#user_email")
    page.add("#continue-button")
    page.add("#user_password")
    page.add('input[type="submit"]')
    if confirmed:
        page.add(".ga3-recommended-channels__title", text="Recommended Channels")


def add_empty_state(page: FakePage) -> None:
    page.add(".ga3-no-items-prompt")
    page.add(".no-items-heading", text="All Caught Up!")


def add_bulk_button(page: FakePage, **kwargs) -> FakeElement:
    return page.add(BULK_BUTTON, text="Schedule All", **kwargs)


def playwright_error(message: str) -> PlaywrightError:
    return PlaywrightError(message)


def playwright_timeout(message: str = "Timeout exceeded.") -> PlaywrightTimeoutError:
    return PlaywrightTimeoutError(message)
