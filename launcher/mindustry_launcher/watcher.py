from __future__ import annotations
import threading
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple
from .logging_setup import get_logger

log = get_logger("mindustry.launcher.watch")

ChangeCallback = Callable[[Path], None]


def _mtime(path: Path) -> Optional[float]:
    try:
        return path.stat().st_mtime
    except OSError:
        return None


class PathWatcher:
    """Polls the modification time of a set of paths and reports changes."""

    def __init__(self, interval: float = 1.0):
        self.interval = interval
        self._watches: List[Tuple[Path, ChangeCallback]] = []
        self._mtimes: Dict[Path, Optional[float]] = {}
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def watch(self, path: Path, callback: ChangeCallback) -> None:
        self._watches.append((path, callback))
        self._mtimes[path] = _mtime(path)

    def check(self) -> List[Path]:
        """One polling pass. Returns the paths whose callbacks fired."""
        changed = []
        for path, callback in list(self._watches):
            current = _mtime(path)
            if current == self._mtimes.get(path):
                continue
            self._mtimes[path] = current
            changed.append(path)
            callback(path)
        return changed

    def start(self) -> None:
        if self._thread is not None or not self._watches:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="mod-watcher", daemon=True)
        self._thread.start()
        log.debug("Watching %d path(s) for changes", len(self._watches))

    def stop(self) -> None:
        if self._thread is None:
            return
        self._stop.set()
        if self._thread is not threading.current_thread():
            self._thread.join(timeout=self.interval + 5)
        self._thread = None

    def _loop(self) -> None:
        while not self._stop.wait(timeout=self.interval):
            self.check()
