from __future__ import annotations

from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field


_BULK_SCHEDULE_BUTTON = 'button[data-action="click->ga3--widgets--bulk-schedule#bulkSchedule"]'


class MarkerSpec(BaseModel):
    """
    One DOM signpost.

    A marker is present when `selector` matches, every selector in `requires` also matches, and (if `text` is set)
    the matched element's text content contains `text`.
    """

    model_config = ConfigDict(frozen=True)

    selector: str = Field(min_length=1)
    text: str = ""
    requires: tuple[str, ...] = ()


class MarkerSet(BaseModel):
    """
    GaggleAMP is externally controlled and its markup drifts (image marker -> "All Caught Up!" heading ->
    data-action button). Keep every page-state signpost here so drift means editing one table.
    """

    model_config = ConfigDict(frozen=True)

    # "Nothing to process" signpost. Authoritative: probed first.
    empty_state: MarkerSpec
    # Control that triggers the bulk action.
    action_trigger: MarkerSpec
    # Optional "select all" checkbox that must be checked before the action is valid.
    select_all: Optional[MarkerSpec] = None


class LoginSelectors(BaseModel):
    model_config = ConfigDict(frozen=True)

    identity_input: str = "#user_email"
    continue_button: str = "#continue-button"
    secret_input: str = "#user_password"
    submit_button: str = 'input[type="submit"]'
    # Only rendered once the session is authenticated.
    confirmation: str = ".ga3-recommended-channels__title"


_CAUGHT_UP = MarkerSpec(
    selector=".no-items-heading",
    text="All Caught Up!",
    requires=(".ga3-no-items-prompt",),
)

MARKER_PRESETS: Mapping[str, MarkerSet] = {
    # Current activities page.
    "bulk-schedule": MarkerSet(
        empty_state=_CAUGHT_UP,
        action_trigger=MarkerSpec(selector=_BULK_SCHEDULE_BUTTON),
    ),
    # Looser button match for when the Stimulus controller path changes but the action name does not.
    "caught-up-heading": MarkerSet(
        empty_state=_CAUGHT_UP,
        action_trigger=MarkerSpec(selector='button[data-action*="#bulkSchedule"]'),
    ),
}

DEFAULT_MARKER_PRESET = "bulk-schedule"
