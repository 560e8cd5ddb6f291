"""Logging configuration for the tasksheet CLI."""

import logging
from pathlib import Path
from typing import Optional

from rich.logging import RichHandler

from tasksheet.cli.formatting import console


class _ConsoleNoiseFilter(logging.Filter):
    """
    Keep the interactive console readable:
    - tasksheet logs pass at the configured level
    - googleapiclient / google.auth / urllib3 only at ERROR+
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name.startswith("tasksheet"):
            return True
        return record.levelno >= logging.ERROR


def setup_logging(
    level: str = "WARNING",
    log_file: Optional[Path] = None,
    file_level: int = logging.DEBUG,
) -> None:
    """
    Configure the root logger with a rich console handler and, optionally,
    a file handler that records everything.

    Call this once, before the first command runs.
    """
    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    for h in list(root.handlers):
        root.removeHandler(h)

    ch = RichHandler(console=console, show_path=False, rich_tracebacks=False)
    ch.setLevel(getattr(logging, level.upper(), logging.WARNING))
    ch.addFilter(_ConsoleNoiseFilter())
    root.addHandler(ch)

    if log_file is not None:
        log_file = Path(log_file).expanduser()
        log_file.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(str(log_file), encoding="utf-8")
        fh.setLevel(file_level)
        fh.setFormatter(logging.Formatter(
            fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))
        root.addHandler(fh)

    logging.captureWarnings(True)
