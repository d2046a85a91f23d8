from __future__ import annotations

import logging
import time
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Callable, ContextManager, Optional

from .config import AppConfig
from .diagnostics import Diagnostics
from .errors import AuthenticationError
from .models import ActionOutcome, Credentials, PageState
from .portal.auth import SessionAuthenticator
from .portal.humanize import Humanizer
from .portal.resolver import ActivityResolver
from .portal.session import AutomatedSession, launch_session
from .portal.waits import current_url
from .util.debug_bundle import create_debug_bundle


logger = logging.getLogger(__name__)

SessionFactory = Callable[[], ContextManager[AutomatedSession]]


@dataclass(frozen=True)
class RunReport:
    outcome: ActionOutcome
    page_state: Optional[PageState] = None
    detail: str = ""
    url: str = ""
    screenshot: Optional[Path] = None
    bundle: Optional[Path] = None

    @property
    def exit_code(self) -> int:
        return self.outcome.exit_code


class WorkflowRunner:
    """
    One run: fresh session -> authenticate -> classify/dispatch -> screenshot -> release.

    Every exception is turned into a `RunReport` here, and the session is released on every path.
    """

    def __init__(
        self,
        cfg: AppConfig,
        *,
        session_factory: Optional[SessionFactory] = None,
        humanizer: Optional[Humanizer] = None,
        diagnostics: Optional[Diagnostics] = None,
    ) -> None:
        self.cfg = cfg
        self.session_factory = session_factory or (lambda: launch_session(cfg.browser))
        self.humanizer = humanizer or Humanizer()
        self.diagnostics = diagnostics or Diagnostics(cfg.diagnostics)

    def run(self, creds: Credentials) -> RunReport:
        t0 = time.time()
        self.diagnostics.reset()
        report: Optional[RunReport] = None
        try:
            with self.session_factory() as session:
                report = self._drive(session, creds)
        except Exception as e:
            if report is None:
                # Launch failure: there is no page to screenshot.
                logger.exception("An error occurred in main execution")
                report = RunReport(outcome=ActionOutcome.ERRORED, detail=f"{type(e).__name__}: {e}")
            else:
                # The outcome is already decided; a teardown error does not change it.
                logger.warning("Session teardown failed after the run finished: %s", e, exc_info=True)

        if not report.outcome.ok and self.cfg.diagnostics.bundle_on_failure:
            report = self._bundle(report)

        level = logging.INFO if report.outcome.ok else logging.ERROR
        logger.log(
            level,
            "Run finished (outcome=%s state=%s seconds=%.2f) %s",
            report.outcome.value,
            report.page_state.value if report.page_state else "-",
            time.time() - t0,
            report.detail,
        )
        return report

    def _drive(self, session: AutomatedSession, creds: Credentials) -> RunReport:
        page = session.page
        cfg = self.cfg
        authenticator = SessionAuthenticator(
            sign_in_url=cfg.target.sign_in_url,
            selectors=cfg.login,
            timeouts=cfg.timeouts,
            humanizer=self.humanizer,
            diagnostics=self.diagnostics,
        )
        resolver = ActivityResolver(
            markers=cfg.marker_set,
            timeouts=cfg.timeouts,
            humanizer=self.humanizer,
            diagnostics=self.diagnostics,
            debug=cfg.debug,
        )

        try:
            authenticator.authenticate(page, creds)
            resolution = resolver.resolve(page)
            report = RunReport(
                outcome=resolution.outcome,
                page_state=resolution.state,
                detail=resolution.detail,
                url=current_url(page),
            )
        except AuthenticationError as e:
            report = RunReport(
                outcome=ActionOutcome.AUTHENTICATION_FAILED,
                detail=str(e),
                url=e.url or current_url(page),
            )
        except Exception as e:
            url = current_url(page)
            logger.exception("Unhandled error during run (url=%s)", url)
            report = RunReport(outcome=ActionOutcome.ERRORED, detail=f"{type(e).__name__}: {e}", url=url)

        # Capture while the page is still open; the session closes right after we return.
        if report.outcome.ok:
            shot = self.diagnostics.capture_final(page)
        else:
            shot = self.diagnostics.capture_failure(page, name=f"failure_{report.outcome.value}")
        return replace(report, screenshot=shot)

    def _bundle(self, report: RunReport) -> RunReport:
        d = self.cfg.diagnostics
        summary = "\n".join(
            [
                f"outcome={report.outcome.value}",
                f"state={report.page_state.value if report.page_state else '-'}",
                f"url={report.url or '-'}",
                f"detail={report.detail}",
            ]
        )
        try:
            bundle = create_debug_bundle(
                debug_dir=d.debug_dir,
                log_file=self.cfg.logging.file_path,
                out_dir=d.bundle_dir,
                screenshots=[str(report.screenshot)] if report.screenshot else None,
                summary=summary,
            )
        except OSError:
            logger.warning("Failed to write debug bundle.", exc_info=True)
            return report
        logger.info("Wrote debug bundle: %s", bundle)
        return replace(report, bundle=bundle)
