"""
log_pipeline.py — Formatting of the game's console output
---------------------------------------------------------
Every line the child process writes goes through a small ordered list of
text stages (highlighting, timestamps, censoring) before it reaches a sink
(the console or the current log file).
"""

from __future__ import annotations
import re
from dataclasses import dataclass
from datetime import datetime
from typing import IO, Callable, Iterable, List, Optional, Sequence, Union

ANSI = {
    "red": "\u001b[0;31m",
    "yellow": "\u001b[0;93m",
    "green": "\u001b[0;92m",
    "blue": "\u001b[0;34m",
    "purple": "\u001b[0;35m",
    "white": "\u001b[0;97m",
    "gray": "\u001b[0;90m",
    "black": "\u001b[0;30m",
    "cyan": "\u001b[0;36m",
    "reset": "\u001b[0m",
    "brightpurple": "\u001b[0;95m",
}

LEVEL_COLORS = {
    "I": ANSI["white"],
    "D": ANSI["gray"],
    "W": ANSI["yellow"],
    "E": ANSI["red"],
}

_LEVEL_TAG = re.compile(r"^\[(\w)\]")
_UUID = re.compile(r"\b[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}\b")

Stage = Callable[[str], str]


def level_color(char: Optional[str]) -> str:
    return LEVEL_COLORS.get(char or "", ANSI["white"])

def time_component(color: bool, now: Optional[datetime] = None) -> str:
    stamp = f"[{(now or datetime.now()):%H:%M:%S}]"
    return f"{ANSI['cyan']}{stamp}" if color else stamp

def format_line(line: str, now: Optional[datetime] = None) -> str:
    return f"{time_component(True, now)} {level_color(line[1:2])}{line}{ANSI['reset']}"


class HighlightStage:
    """
    Colours Mindustry's log lines by level.

    Lines tagged `[I]`, `[W]`, ... start a new entry; untagged lines (stack
    traces and other multi-line output) are indented and keep the colour of
    the entry they belong to.
    """

    CONTINUATION = ":          "

    def __init__(self, clock: Callable[[], datetime] = datetime.now):
        self._clock = clock
        self._color = ANSI["white"]
        self._first = True

    def __call__(self, line: str) -> str:
        tag = _LEVEL_TAG.match(line)
        if tag or self._first:
            out = format_line(line, self._clock())
        else:
            out = f"{self._color}{self.CONTINUATION}{line}{ANSI['reset']}"
        if tag:
            self._color = level_color(tag.group(1))
        self._first = False
        return out


def prefix_stage(text: Union[str, Callable[[], str]]) -> Stage:
    def stage(line: str) -> str:
        return f"{text() if callable(text) else text} {line}"
    return stage

def timestamp_stage(clock: Callable[[], datetime] = datetime.now) -> Stage:
    return prefix_stage(lambda: time_component(False, clock()))

def censor_stage(keyword: str, replacement: str) -> Stage:
    def stage(line: str) -> str:
        return line.replace(keyword, replacement)
    return stage

def censor_uuids_stage(replacement: str = "[UUID]") -> Stage:
    def stage(line: str) -> str:
        return _UUID.sub(replacement, line)
    return stage


class LinePipeline:
    def __init__(self, stages: Iterable[Stage] = ()):
        self.stages: List[Stage] = list(stages)

    def apply(self, line: str) -> str:
        for stage in self.stages:
            line = stage(line)
        return line


@dataclass
class Route:
    pipeline: LinePipeline
    sink: IO[str]


def _decode(raw: Union[bytes, str]) -> str:
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    return raw.rstrip("\r\n")

def pump(stream: IO, routes: Sequence[Route]) -> int:
    """Read `stream` line by line until EOF and feed every route. Returns the line count."""
    live = list(routes)
    count = 0
    for raw in stream:
        line = _decode(raw)
        count += 1
        for route in list(live):
            try:
                route.sink.write(route.pipeline.apply(line) + "\n")
                route.sink.flush()
            except (ValueError, OSError):
                # sink was closed underneath us (log rotated on restart)
                live.remove(route)
    return count


def _censors(config, username: Optional[str]) -> List[Stage]:
    stages: List[Stage] = []
    if config.logging.remove_username and username:
        stages.append(censor_stage(username, "[USERNAME]"))
    if config.logging.remove_uuids:
        stages.append(censor_uuids_stage())
    return stages

def build_console_pipeline(config, username: Optional[str]) -> LinePipeline:
    return LinePipeline([HighlightStage(), *_censors(config, username)])

def build_file_pipeline(config, username: Optional[str]) -> LinePipeline:
    return LinePipeline([timestamp_stage(), *_censors(config, username)])

def log_file_name(now: datetime) -> str:
    return f"{now.year}-{now.month}-{now.day}--{now.hour}-{now.minute}-{now.second}.txt"
