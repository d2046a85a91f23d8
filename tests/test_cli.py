from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator

import pytest

from gaggle_bulk_scheduler import cli
from gaggle_bulk_scheduler.models import ActionOutcome, PageState
from gaggle_bulk_scheduler.runner import RunReport


@pytest.fixture(autouse=True)
def _isolated(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    monkeypatch.chdir(tmp_path)
    for key in ("HEADLESS", "DEBUG", "MARKER_PRESET", "LOG_FILE", "LOG_TIMEZONE", "GAGGLE_SIGN_IN_URL"):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("GAGGLE_EMAIL", "me@example.com")
    monkeypatch.setenv("GAGGLE_PASSWORD", "s3cret")
    root = logging.getLogger()
    saved = list(root.handlers), root.level
    yield
    for h in list(root.handlers):
        if h not in saved[0]:
            h.close()
    root.handlers[:] = saved[0]
    root.setLevel(saved[1])


class _RecordingRunner:
    instances: list["_RecordingRunner"] = []
    outcome = ActionOutcome.SUCCESS

    def __init__(self, cfg) -> None:
        self.cfg = cfg
        _RecordingRunner.instances.append(self)

    def run(self, creds) -> RunReport:
        self.creds = creds
        return RunReport(outcome=self.outcome, page_state=PageState.ACTIONABLE)


@pytest.fixture
def runner(monkeypatch: pytest.MonkeyPatch) -> type[_RecordingRunner]:
    _RecordingRunner.instances = []
    _RecordingRunner.outcome = ActionOutcome.SUCCESS
    monkeypatch.setattr(cli, "WorkflowRunner", _RecordingRunner)
    return _RecordingRunner


def test_list_markers(capsys: pytest.CaptureFixture[str]) -> None:
    assert cli.main(["--env-file", "none.env", "list-markers"]) == 0
    out = capsys.readouterr().out
    assert "bulk-schedule:" in out
    assert "caught-up-heading:" in out
    assert "All Caught Up!" in out


def test_preflight_ok() -> None:
    assert cli.main(["--env-file", "none.env", "preflight", "--config", "missing.yaml"]) == 0


def test_missing_credentials_exit(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("GAGGLE_PASSWORD")
    with pytest.raises(SystemExit) as exc:
        cli.main(["--env-file", "none.env", "preflight"])
    assert "GAGGLE_PASSWORD" in str(exc.value.code)


def test_credentials_from_env_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, runner) -> None:
    monkeypatch.delenv("GAGGLE_EMAIL")
    monkeypatch.delenv("GAGGLE_PASSWORD")
    env_file = tmp_path / "test.env"
    env_file.write_text("GAGGLE_EMAIL=file@example.com\nGAGGLE_PASSWORD=from-file\n", encoding="utf-8")

    assert cli.main(["--env-file", str(env_file), "run"]) == 0
    assert runner.instances[0].creds.identity == "file@example.com"


@pytest.mark.parametrize(
    "outcome, code",
    [
        (ActionOutcome.SUCCESS, 0),
        (ActionOutcome.NO_ACTION_NEEDED, 0),
        (ActionOutcome.ACTION_FAILED, 1),
        (ActionOutcome.AUTHENTICATION_FAILED, 1),
        (ActionOutcome.INDETERMINATE, 1),
        (ActionOutcome.ERRORED, 1),
    ],
)
def test_run_exit_codes(runner, outcome: ActionOutcome, code: int) -> None:
    runner.outcome = outcome
    assert cli.main(["--env-file", "none.env", "run"]) == code


def test_run_flags_override_config(runner) -> None:
    argv = [
        "--env-file",
        "none.env",
        "run",
        "--headful",
        "--debug",
        "--slowmo-ms",
        "250",
        "--step-debug",
        "--step-delay-ms",
        "100",
        "--markers",
        "caught-up-heading",
        "--bundle-on-failure",
    ]
    assert cli.main(argv) == 0

    cfg = runner.instances[0].cfg
    assert cfg.browser.headless is False
    assert cfg.browser.slow_mo_ms == 250
    assert cfg.debug is True
    assert cfg.diagnostics.step_debug is True
    assert cfg.diagnostics.step_delay_ms == 100
    assert cfg.diagnostics.bundle_on_failure is True
    assert cfg.markers.preset == "caught-up-heading"
    assert cfg.marker_set.action_trigger.selector == 'button[data-action*="#bulkSchedule"]'


def test_run_unknown_marker_preset(runner) -> None:
    with pytest.raises(SystemExit):
        cli.main(["--env-file", "none.env", "run", "--markers", "nope"])
    assert runner.instances == []
