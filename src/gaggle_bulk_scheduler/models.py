from __future__ import annotations

import enum
from dataclasses import dataclass, field


@dataclass(frozen=True)
class Credentials:
    identity: str
    secret: str = field(repr=False)


class PageState(str, enum.Enum):
    LOADING = "loading"
    EMPTY = "empty"
    ACTIONABLE = "actionable"
    INDETERMINATE = "indeterminate"
    ERRORED = "errored"


class ActionOutcome(str, enum.Enum):
    SUCCESS = "success"
    NO_ACTION_NEEDED = "no_action_needed"
    ACTION_FAILED = "action_failed"
    AUTHENTICATION_FAILED = "authentication_failed"
    INDETERMINATE = "indeterminate"
    # Unhandled exception caught at the outermost boundary.
    ERRORED = "errored"

    @property
    def ok(self) -> bool:
        return self in (ActionOutcome.SUCCESS, ActionOutcome.NO_ACTION_NEEDED)

    @property
    def exit_code(self) -> int:
        return 0 if self.ok else 1
