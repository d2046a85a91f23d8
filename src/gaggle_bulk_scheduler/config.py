from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, Mapping, Optional, Union
from urllib.parse import urlparse

import yaml
from dateutil import tz
from pydantic import BaseModel, Field, ValidationError, model_validator

from .errors import ConfigError
from .models import Credentials
from .portal.selectors import DEFAULT_MARKER_PRESET, MARKER_PRESETS, LoginSelectors, MarkerSet


_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z0-9_]+)\}")

IDENTITY_ENV = "GAGGLE_EMAIL"
SECRET_ENV = "GAGGLE_PASSWORD"
DEFAULT_SIGN_IN_URL = "https://accounts.gaggleamp.com/sign_in"


def _expand_env_vars(value: object) -> object:
    if isinstance(value, str):
        def repl(match: re.Match[str]) -> str:
            var = match.group(1)
            return os.getenv(var, "")

        return _ENV_VAR_PATTERN.sub(repl, value)
    if isinstance(value, list):
        return [_expand_env_vars(v) for v in value]
    if isinstance(value, dict):
        return {k: _expand_env_vars(v) for k, v in value.items()}
    return value


def _env_bool(name: str, default: bool = False) -> bool:
    raw = (os.getenv(name, "") or "").strip().lower()
    if not raw:
        return bool(default)
    return raw in {"1", "true", "t", "yes", "y", "on"}


def _deep_merge(base: object, override: object) -> object:
    if isinstance(base, dict) and isinstance(override, dict):
        out = dict(base)
        for k, v in override.items():
            if k in out:
                out[k] = _deep_merge(out[k], v)
            else:
                out[k] = v
        return out
    return override


def _default_config_from_env() -> dict:
    """
    Env-only config so a scheduled run only needs `.env`. YAML remains an optional override.
    """
    return {
        "target": {
            "sign_in_url": os.getenv("GAGGLE_SIGN_IN_URL", DEFAULT_SIGN_IN_URL),
        },
        "browser": {
            "headless": _env_bool("HEADLESS", default=True),
        },
        "markers": {
            "preset": os.getenv("MARKER_PRESET", DEFAULT_MARKER_PRESET),
        },
        "debug": _env_bool("DEBUG", default=False),
        "logging": {
            "level": os.getenv("LOG_LEVEL", "INFO"),
            "file_path": os.getenv("LOG_FILE", "data/run.log"),
            "timezone": os.getenv("LOG_TIMEZONE", "America/Los_Angeles"),
        },
        "diagnostics": {
            "error_screenshot": os.getenv("ERROR_SCREENSHOT_PATH", "data/error-screenshot.png"),
            "final_screenshot": os.getenv("FINAL_SCREENSHOT_PATH", "data/final-screenshot.png"),
            "debug_dir": os.getenv("DEBUG_DIR", "data/debug"),
        },
    }


class TargetConfig(BaseModel):
    sign_in_url: str = DEFAULT_SIGN_IN_URL

    @model_validator(mode="after")
    def _validate_url(self) -> "TargetConfig":
        url = (self.sign_in_url or "").strip()
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"target.sign_in_url must be a full URL (got {self.sign_in_url!r})")
        self.sign_in_url = url
        return self


class BrowserConfig(BaseModel):
    headless: bool = True
    viewport_width: int = Field(default=2200, gt=0)
    viewport_height: int = Field(default=1000, gt=0)
    slow_mo_ms: int = Field(default=0, ge=0)
    launch_timeout_ms: int = Field(default=30_000, gt=0)


class TimeoutsConfig(BaseModel):
    """
    Per-step bounds in milliseconds. Every wait in a run uses one of these; there are no unbounded waits.
    """

    # Sign-in page load and post-login render are slow; both keep a 60s floor.
    navigation_ms: int = Field(default=60_000, ge=60_000)
    login_element_ms: int = Field(default=5_000, gt=0)
    confirmation_ms: int = Field(default=60_000, ge=60_000)
    network_idle_ms: int = Field(default=30_000, gt=0)
    action_ms: int = Field(default=10_000, gt=0)
    click_ms: int = Field(default=5_000, gt=0)


class MarkersConfig(BaseModel):
    preset: str = DEFAULT_MARKER_PRESET
    markers: MarkerSet

    @model_validator(mode="before")
    @classmethod
    def _apply_preset(cls, data: object) -> object:
        # Fields given alongside `preset` override the preset's marker definitions.
        if not isinstance(data, dict):
            return data
        if "markers" in data:
            return data
        preset = str(data.get("preset") or DEFAULT_MARKER_PRESET).strip()
        if preset not in MARKER_PRESETS:
            known = ", ".join(sorted(MARKER_PRESETS))
            raise ValueError(f"Unknown marker preset {preset!r} (known: {known})")
        base = MARKER_PRESETS[preset].model_dump()
        overrides = {k: v for k, v in data.items() if k != "preset"}
        return {"preset": preset, "markers": _deep_merge(base, overrides)}


class LoggingConfig(BaseModel):
    level: str = "INFO"
    file_path: str = "data/run.log"
    timezone: str = "America/Los_Angeles"

    @model_validator(mode="after")
    def _validate_timezone(self) -> "LoggingConfig":
        if tz.gettz(self.timezone) is None:
            raise ValueError(f"logging.timezone is not a known time zone: {self.timezone!r}")
        return self


class DiagnosticsConfig(BaseModel):
    error_screenshot: str = "data/error-screenshot.png"
    final_screenshot: str = "data/final-screenshot.png"
    debug_dir: str = "data/debug"
    step_debug: bool = False
    step_delay_ms: int = Field(default=0, ge=0)
    bundle_on_failure: bool = False
    bundle_dir: str = "data"


class AppConfig(BaseModel):
    target: TargetConfig = TargetConfig()
    browser: BrowserConfig = BrowserConfig()
    timeouts: TimeoutsConfig = TimeoutsConfig()
    login: LoginSelectors = LoginSelectors()
    markers: MarkersConfig = Field(default_factory=lambda: MarkersConfig.model_validate({}))
    debug: bool = False
    logging: LoggingConfig = LoggingConfig()
    diagnostics: DiagnosticsConfig = DiagnosticsConfig()

    @property
    def marker_set(self) -> MarkerSet:
        return self.markers.markers


def load_config(path: Union[str, Path, None] = None) -> AppConfig:
    raw: dict = {}
    if path:
        p = Path(path)
        if p.exists():
            raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
            if not isinstance(raw, dict):
                raise ConfigError(f"Config file must contain a mapping at the top level: {p}")
            raw = _expand_env_vars(raw)  # supports ${ENV_VAR} in YAML

    merged = _deep_merge(_default_config_from_env(), raw)
    try:
        return AppConfig.model_validate(merged)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


def load_credentials(env: Optional[Mapping[str, str]] = None) -> Credentials:
    """
    Build the run's `Credentials` from the process environment (or an explicit mapping).

    This is the only place secrets are read; everything downstream receives the value by parameter.
    """
    source: Mapping[str, Any] = os.environ if env is None else env
    identity = (source.get(IDENTITY_ENV) or "").strip()
    secret = source.get(SECRET_ENV) or ""
    missing = [name for name, value in ((IDENTITY_ENV, identity), (SECRET_ENV, secret)) if not value]
    if missing:
        raise ConfigError(f"Missing required credentials in environment: {', '.join(missing)}")
    return Credentials(identity=identity, secret=secret)
