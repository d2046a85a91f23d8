from __future__ import annotations

import argparse
import logging
import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .config import AppConfig, load_config, load_credentials
from .errors import ConfigError
from .logging_config import configure_logging
from .portal.selectors import MARKER_PRESETS, MarkerSet
from .runner import WorkflowRunner


logger = logging.getLogger("gaggle_bulk_scheduler")


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="gaggle_bulk_scheduler")
    p.add_argument(
        "--env-file",
        default=".env",
        help="Path to a dotenv file (default: .env). If missing, env vars must already be set.",
    )

    sub = p.add_subparsers(dest="cmd", required=True)

    run = sub.add_parser("run", help="Log in and bulk-schedule pending activities if there are any")
    run.add_argument("--config", default="config.yaml", help="Path to YAML config (default: config.yaml)")
    run.add_argument("--headful", action="store_true", help="Run browser headful (debug)")
    run.add_argument("--debug", action="store_true", help="Verbose logging, including marker probe evidence")
    run.add_argument("--slowmo-ms", type=int, default=None, help="Playwright slow motion in milliseconds (debug).")
    run.add_argument("--step-debug", action="store_true", help="Save step-by-step screenshots under the debug dir.")
    run.add_argument(
        "--step-delay-ms",
        type=int,
        default=None,
        help="Extra delay (ms) after each captured step screenshot (so you can watch the browser).",
    )
    run.add_argument(
        "--markers",
        default="",
        help=f"Marker preset to use (one of: {', '.join(sorted(MARKER_PRESETS))}). Overrides the config file.",
    )
    run.add_argument(
        "--bundle-on-failure",
        action="store_true",
        help="Zip the debug dir, log file and screenshot after a failed run.",
    )

    preflight = sub.add_parser(
        "preflight",
        help="Validate configuration and credentials. Does not launch a browser.",
    )
    preflight.add_argument("--config", default="config.yaml", help="Path to YAML config (default: config.yaml)")

    sub.add_parser("list-markers", help="Print the built-in page-state marker presets")
    return p


def _apply_overrides(cfg: AppConfig, args: argparse.Namespace) -> AppConfig:
    browser = cfg.browser
    if args.headful:
        browser = browser.model_copy(update={"headless": False})
    if args.slowmo_ms is not None:
        browser = browser.model_copy(update={"slow_mo_ms": max(0, args.slowmo_ms)})

    diagnostics = cfg.diagnostics
    if args.step_debug:
        diagnostics = diagnostics.model_copy(update={"step_debug": True})
    if args.step_delay_ms is not None:
        diagnostics = diagnostics.model_copy(update={"step_delay_ms": max(0, args.step_delay_ms)})
    if args.bundle_on_failure:
        diagnostics = diagnostics.model_copy(update={"bundle_on_failure": True})

    markers = cfg.markers
    if args.markers:
        if args.markers not in MARKER_PRESETS:
            raise SystemExit(f"Unknown marker preset {args.markers!r}. Run `list-markers` to see the options.")
        markers = markers.model_copy(update={"preset": args.markers, "markers": MARKER_PRESETS[args.markers]})

    update: dict = {"browser": browser, "diagnostics": diagnostics, "markers": markers}
    if args.debug:
        update["debug"] = True
    return cfg.model_copy(update=update)


def _describe_markers(name: str, markers: MarkerSet) -> List[str]:
    lines = [f"{name}:"]
    for field in ("empty_state", "action_trigger", "select_all"):
        spec = getattr(markers, field)
        if spec is None:
            lines.append(f"  {field}: -")
            continue
        extra = ""
        if spec.text:
            extra += f" text={spec.text!r}"
        if spec.requires:
            extra += f" requires={list(spec.requires)}"
        lines.append(f"  {field}: {spec.selector}{extra}")
    return lines


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)

    env_path = Path(args.env_file)
    if env_path.exists():
        load_dotenv(env_path)

    # Default logging: can be overridden once config is loaded.
    configure_logging(level=os.getenv("LOG_LEVEL", "INFO"))

    if args.cmd == "list-markers":
        for name, markers in sorted(MARKER_PRESETS.items()):
            print("\n".join(_describe_markers(name, markers)))
        return 0

    try:
        cfg = load_config(args.config)
        creds = load_credentials()
    except ConfigError as e:
        raise SystemExit(str(e))

    if args.cmd == "preflight":
        configure_logging(level=cfg.logging.level, file_path=cfg.logging.file_path, timezone=cfg.logging.timezone)
        logger.info(
            "Preflight OK (sign_in_url=%s markers=%s headless=%s)",
            cfg.target.sign_in_url,
            cfg.markers.preset,
            cfg.browser.headless,
        )
        return 0

    if args.cmd == "run":
        cfg = _apply_overrides(cfg, args)
        level = "DEBUG" if cfg.debug else cfg.logging.level
        configure_logging(level=level, file_path=cfg.logging.file_path, timezone=cfg.logging.timezone)
        logger.info("Starting run (headless=%s markers=%s)", cfg.browser.headless, cfg.markers.preset)

        report = WorkflowRunner(cfg).run(creds)
        if report.exit_code == 0:
            logger.info("Script completed successfully")
        else:
            logger.error("Script completed with errors (outcome=%s)", report.outcome.value)
        return report.exit_code

    raise SystemExit(f"Unknown command: {args.cmd}")
