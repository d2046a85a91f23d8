from __future__ import annotations

import enum
from typing import Optional


class GaggleSchedulerError(RuntimeError):
    """Base class for errors raised by this package."""


class ConfigError(GaggleSchedulerError):
    """
    Raised when configuration or credentials are missing or invalid.
    """


class AuthFailureReason(str, enum.Enum):
    NAVIGATION_TIMEOUT = "navigation_timeout"
    NAVIGATION_FAILED = "navigation_failed"
    ELEMENT_NOT_FOUND = "element_not_found"
    INTERACTION_FAILED = "interaction_failed"
    CONFIRMATION_TIMEOUT = "confirmation_timeout"


class AuthenticationError(GaggleSchedulerError):
    """
    Raised when the sign-in flow cannot reach an authenticated page.

    Carries the failing step and the page URL at the time of failure so the run can be triaged offline.
    """

    def __init__(
        self,
        reason: AuthFailureReason,
        message: str,
        *,
        step: str = "",
        url: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.reason = reason
        self.step = step
        self.url = url or ""

    def __str__(self) -> str:
        base = super().__str__()
        return f"{base} (reason={self.reason.value} step={self.step or '-'} url={self.url or '-'})"
