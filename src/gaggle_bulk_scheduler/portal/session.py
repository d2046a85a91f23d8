from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator, Optional

from playwright.sync_api import Browser, BrowserContext, Page, Playwright, sync_playwright

from ..config import BrowserConfig


logger = logging.getLogger(__name__)


class AutomatedSession:
    """
    Exclusive owner of one browser, one context and one page for a single run.

    `close()` is idempotent: the context and browser are released exactly once no matter how many exit paths
    call it.
    """

    def __init__(self, *, browser: Browser, context: BrowserContext, page: Page) -> None:
        self._browser = browser
        self._context = context
        self._page = page
        self._closed = False

    @property
    def page(self) -> Page:
        if self._closed:
            raise RuntimeError("AutomatedSession is closed")
        return self._page

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._context.close()
        except Exception:
            logger.warning("Failed to close browser context; closing browser anyway.", exc_info=True)
        finally:
            try:
                self._browser.close()
            except Exception:
                logger.warning("Failed to close browser.", exc_info=True)
            else:
                logger.info("Browser closed")

    def __enter__(self) -> "AutomatedSession":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()


def _launch_chromium(p: Playwright, cfg: BrowserConfig) -> Browser:
    kwargs: dict = {
        "headless": cfg.headless,
        "slow_mo": int(cfg.slow_mo_ms or 0),
        "timeout": cfg.launch_timeout_ms,
    }
    # Prefer Playwright's bundled Chromium, but fall back to a system-installed browser if the
    # cache doesn't have Playwright browsers available.
    try:
        return p.chromium.launch(**kwargs)
    except Exception as e:
        msg = str(e)
        if "Executable doesn't exist" not in msg:
            raise

        logger.warning(
            "Playwright Chromium executable missing; falling back to system browser channel. (%s)",
            msg,
        )

        # Try Chrome first, then Edge.
        try:
            return p.chromium.launch(channel="chrome", **kwargs)
        except Exception:
            return p.chromium.launch(channel="msedge", **kwargs)


@contextmanager
def launch_session(cfg: Optional[BrowserConfig] = None) -> Iterator[AutomatedSession]:
    """
    Scoped acquisition of a fresh browser session. Always builds a new browser; nothing is reused across runs.
    """
    cfg = cfg or BrowserConfig()
    logger.info("Starting browser launch")
    with sync_playwright() as p:
        browser = _launch_chromium(p, cfg)
        logger.info("Browser launched successfully")
        session: Optional[AutomatedSession] = None
        try:
            context = browser.new_context(
                viewport={"width": cfg.viewport_width, "height": cfg.viewport_height},
                color_scheme="light",
            )
            page = context.new_page()
            logger.info("New page created")
            session = AutomatedSession(browser=browser, context=context, page=page)
            yield session
        finally:
            if session is not None:
                session.close()
            else:
                browser.close()
