# tests/test_logging_setup.py

from __future__ import annotations

import logging
from pathlib import Path

from rich.logging import RichHandler

from tasksheet.logging_setup import _ConsoleNoiseFilter, setup_logging


def _record(name: str, level: int) -> logging.LogRecord:
    return logging.LogRecord(name, level, __file__, 1, "msg", None, None)


def test_noise_filter_lets_own_logs_through() -> None:
    f = _ConsoleNoiseFilter()

    assert f.filter(_record("tasksheet.core.bridge", logging.DEBUG))
    assert not f.filter(_record("googleapiclient.discovery", logging.WARNING))
    assert f.filter(_record("urllib3.connectionpool", logging.ERROR))


def test_setup_logging_installs_console_and_file_handlers(tmp_path: Path) -> None:
    root = logging.getLogger()
    saved = list(root.handlers), root.level
    log_file = tmp_path / "logs" / "tasksheet.log"

    try:
        setup_logging("info", log_file)

        console_handlers = [h for h in root.handlers if isinstance(h, RichHandler)]
        file_handlers = [h for h in root.handlers if isinstance(h, logging.FileHandler)]
        assert len(console_handlers) == 1
        assert console_handlers[0].level == logging.INFO
        assert len(file_handlers) == 1

        logging.getLogger("tasksheet.test").debug("written to file only")
        file_handlers[0].flush()
        assert "written to file only" in log_file.read_text(encoding="utf-8")
    finally:
        for h in list(root.handlers):
            root.removeHandler(h)
            h.close()
        for h in saved[0]:
            root.addHandler(h)
        root.setLevel(saved[1])
        logging.captureWarnings(False)
