"""
Interactive console: commands typed into the launcher's stdin.
"""

from __future__ import annotations
import re
import sys
from enum import Enum
from typing import IO, Optional, Tuple
from .logging_setup import get_logger
from .supervisor import Supervisor

log = get_logger("mindustry.launcher.console")


class Command(Enum):
    RESTART = "restart"
    REBUILD = "rebuild"
    RECOMPILE = "recompile"
    HELP = "help"
    EXIT = "exit"
    PASS = "pass"
    UNKNOWN = "unknown"


ALIASES = {
    "restart": Command.RESTART, "rs": Command.RESTART,
    "rebuild": Command.REBUILD, "rb": Command.REBUILD,
    "recompile": Command.RECOMPILE, "rc": Command.RECOMPILE,
    "help": Command.HELP, "h": Command.HELP, "?": Command.HELP,
    "exit": Command.EXIT, "e": Command.EXIT, "quit": Command.EXIT, "q": Command.EXIT,
    "pass": Command.PASS, "p": Command.PASS, "-": Command.PASS,
}

HELP_TEXT = ("Commands: 'restart/rs', 'rebuild/rb', 'recompile/rc', 'pass/p/- <text>', "
             "'help/h/?', 'exit/e/quit/q'")

_FIRST_TOKEN = re.compile(r"\s*(\S+)(?:\s(.*))?", re.DOTALL)


def parse_command(line: str) -> Tuple[Optional[Command], str]:
    """Split a line into its command and the rest. Blank lines give (None, "")."""
    m = _FIRST_TOKEN.fullmatch(line.rstrip("\r\n"))
    if m is None:
        return None, ""
    return ALIASES.get(m.group(1).lower(), Command.UNKNOWN), m.group(2) or ""


class Console:
    def __init__(self, supervisor: Supervisor):
        self.supervisor = supervisor

    def handle(self, line: str) -> Optional[Command]:
        command, rest = parse_command(line)
        if command is None:
            return None

        if command is Command.RESTART:
            self.supervisor.try_restart()
        elif command is Command.REBUILD:
            self.supervisor.try_restart(rebuild_mods=True)
        elif command is Command.RECOMPILE:
            self.supervisor.try_restart(recompile=True)
        elif command is Command.HELP:
            log.info(HELP_TEXT)
        elif command is Command.EXIT:
            self.supervisor.shutdown(0)
        elif command is Command.PASS:
            if not self.supervisor.send(rest):
                log.error("Stream not writeable.")
        else:
            log.warning("Unknown command. Type 'help' for a list of commands.")
        return command

    def run(self, stream: Optional[IO[str]] = None) -> None:
        """Read commands until EOF or until the supervisor has exited."""
        stream = stream or sys.stdin
        for line in stream:
            self.handle(line)
            if self.supervisor.finished:
                break
