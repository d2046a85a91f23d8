import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Optional

from dateutil import tz


LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"
DEFAULT_TIMEZONE = "America/Los_Angeles"


class ZonedFormatter(logging.Formatter):
    """
    Render `asctime` in one fixed time zone, whatever the host's local zone is.
    """

    default_time_format = "%Y-%m-%d %H:%M:%S %Z"

    def __init__(self, fmt: str = LOG_FORMAT, *, timezone: str = DEFAULT_TIMEZONE) -> None:
        super().__init__(fmt)
        zone = tz.gettz(timezone)
        if zone is None:
            raise ValueError(f"Unknown time zone: {timezone!r}")
        self._zone = zone

    def formatTime(self, record: logging.LogRecord, datefmt: Optional[str] = None) -> str:
        dt = datetime.fromtimestamp(record.created, tz=self._zone)
        return dt.strftime(datefmt or self.default_time_format)


def configure_logging(
    level: str = "INFO",
    file_path: Optional[str] = None,
    timezone: str = DEFAULT_TIMEZONE,
) -> None:
    numeric_level = getattr(logging, (level or "INFO").upper(), logging.INFO)
    formatter = ZonedFormatter(timezone=timezone)

    handlers: list[logging.Handler] = [logging.StreamHandler()]

    if file_path:
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path, encoding="utf-8"))

    for handler in handlers:
        handler.setFormatter(formatter)

    logging.basicConfig(
        level=numeric_level,
        handlers=handlers,
        force=True,  # allow configure_logging() to be called multiple times (CLI does this)
    )

    # Reduce noise from chatty libraries
    for noisy in ("playwright", "urllib3"):
        logging.getLogger(noisy).setLevel(os.getenv("NOISY_LOG_LEVEL", "WARNING"))
