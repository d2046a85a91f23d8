from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Optional

from playwright.sync_api import Page

from .config import DiagnosticsConfig


logger = logging.getLogger(__name__)


class Diagnostics:
    """
    Screenshots and page dumps for offline triage. Every method is best-effort: a failed capture is logged and
    never changes the run's outcome.
    """

    def __init__(self, cfg: Optional[DiagnosticsConfig] = None) -> None:
        self.cfg = cfg or DiagnosticsConfig()
        self._step_counter = 0

    def reset(self) -> None:
        """Restart step numbering; called at the start of every run."""
        self._step_counter = 0

    def capture_failure(self, page: Page, *, name: str) -> Optional[Path]:
        """
        Screenshot to the fixed error path, plus HTML and body text under the debug dir.
        """
        shot = self._screenshot(page, Path(self.cfg.error_screenshot))
        self._dump_page(page, name_prefix=name)
        return shot

    def capture_final(self, page: Page) -> Optional[Path]:
        return self._screenshot(page, Path(self.cfg.final_screenshot))

    def step(self, page: Page, name: str) -> None:
        """
        If step debugging is enabled, log the step and save a numbered screenshot.
        """
        if not self.cfg.step_debug:
            return

        self._step_counter += 1
        safe = re.sub(r"[^a-zA-Z0-9_-]+", "_", name).strip("_")[:60] or "step"
        prefix = f"step_{self._step_counter:02d}_{safe}"

        try:
            logger.info("Step %02d %s (url=%s)", self._step_counter, name, getattr(page, "url", ""))
        except Exception:
            pass

        try:
            out_dir = Path(self.cfg.debug_dir)
            out_dir.mkdir(parents=True, exist_ok=True)
            page.screenshot(path=str(out_dir / f"{prefix}.png"), full_page=True)
        except Exception:
            logger.debug("Failed to save step screenshot (name=%s).", name, exc_info=True)

        if self.cfg.step_delay_ms > 0:
            try:
                page.wait_for_timeout(self.cfg.step_delay_ms)
            except Exception:
                pass

    def _screenshot(self, page: Page, path: Path) -> Optional[Path]:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            page.screenshot(path=str(path), full_page=True)
        except Exception:
            logger.warning("Failed to capture screenshot at %s", path, exc_info=True)
            return None
        logger.info("Saved screenshot: %s", path)
        return path

    def _dump_page(self, page: Page, *, name_prefix: str) -> None:
        try:
            out_dir = Path(self.cfg.debug_dir)
            out_dir.mkdir(parents=True, exist_ok=True)
            (out_dir / f"{name_prefix}.html").write_text(page.content(), encoding="utf-8")
            # Rendered body text is easier to diff against marker definitions than raw HTML.
            try:
                (out_dir / f"{name_prefix}.txt").write_text(page.inner_text("body"), encoding="utf-8")
            except Exception:
                pass
        except Exception:
            logger.debug("Failed to save debug artifacts.", exc_info=True)
