"""
Launcher logging
----------------
Launcher messages go to stdout as `[Launcher] ...` (or JSON lines with
LOG_JSON=true) and to a rotating launcher.log next to config.json.

The game's own output does not pass through here; see log_pipeline.
"""

from __future__ import annotations
import json
import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import TYPE_CHECKING
from .log_pipeline import ANSI

if TYPE_CHECKING:
    from .fs_layout import Layout
    from .settings import Settings

LAUNCHER_LOGGER = "mindustry.launcher"

class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%S%z"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)

class _ConsoleFormatter(logging.Formatter):
    """`[Launcher] message`, errors in red and warnings in yellow."""

    def format(self, record: logging.LogRecord) -> str:
        if record.levelno >= logging.ERROR:
            color = ANSI["red"]
        elif record.levelno >= logging.WARNING:
            color = ANSI["yellow"]
        else:
            color = ANSI["reset"]
        out = f"{ANSI['blue']}[Launcher]{color} {record.getMessage()}{ANSI['reset']}"
        if record.exc_info:
            out += "\n" + self.formatException(record.exc_info)
        return out

def setup_logging(settings: Settings, layout: Layout) -> None:
    level = settings.log_level.upper()
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level)

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(_JsonFormatter() if settings.log_json else _ConsoleFormatter())
    root.addHandler(console)

    log_path = layout.launcher_dir / "launcher.log"
    try:
        layout.launcher_dir.mkdir(parents=True, exist_ok=True)
        fh = RotatingFileHandler(log_path, maxBytes=5_000_000, backupCount=3, encoding="utf-8")
    except OSError:
        # console logging keeps working without the file
        root.warning("Could not open %s, continuing with console logging only.", log_path)
        return
    fh.setFormatter(_JsonFormatter() if settings.log_json else logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    ))
    fh.setLevel(level)
    launcher_logger = logging.getLogger(LAUNCHER_LOGGER)
    launcher_logger.addHandler(fh)
    launcher_logger.propagate = True

def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
