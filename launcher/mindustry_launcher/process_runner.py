from __future__ import annotations
import subprocess
import threading
from pathlib import Path
from typing import Callable, List, Optional, Sequence
from .log_pipeline import Route, pump
from .logging_setup import get_logger

log = get_logger("mindustry.launcher.proc")

ExitListener = Callable[[int], None]


class ProcessHandle:
    """A spawned child plus the listeners that want to hear about its exit."""

    def __init__(self, name: str, proc: subprocess.Popen):
        self.name = name
        self.proc = proc
        self._listeners: List[ExitListener] = []
        self._lock = threading.Lock()
        self._pumps: List[threading.Thread] = []

    @property
    def pid(self) -> int:
        return self.proc.pid

    @property
    def listener_count(self) -> int:
        with self._lock:
            return len(self._listeners)

    def add_exit_listener(self, listener: ExitListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def remove_all_listeners(self) -> None:
        with self._lock:
            self._listeners.clear()

    def _fire_exit(self, code: int) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            listener(code)

    def terminate(self) -> None:
        if self.proc.poll() is not None:
            return
        log.info("Stopping %s (pid=%s)", self.name, self.proc.pid)
        try:
            self.proc.terminate()
        except ProcessLookupError:
            pass

    @property
    def writable(self) -> bool:
        stdin = self.proc.stdin
        return stdin is not None and not stdin.closed and self.proc.poll() is None

    def write_line(self, text: str) -> bool:
        if not self.writable:
            return False
        try:
            self.proc.stdin.write((text + "\n").encode("utf-8"))
            self.proc.stdin.flush()
        except (OSError, ValueError):
            return False
        return True


class ProcessRunner:
    def __init__(self, pump_join_timeout: float = 2.0):
        self.pump_join_timeout = pump_join_timeout

    def start(self, name: str, cmd: List[str], *, stdout_routes: Sequence[Route] = (),
              stderr_routes: Sequence[Route] = (), on_exit: Optional[ExitListener] = None,
              cwd: Optional[Path] = None, env: Optional[dict] = None) -> ProcessHandle:
        log.info("Starting %s: %s", name, " ".join(cmd))
        proc = subprocess.Popen(cmd, cwd=str(cwd) if cwd else None, stdin=subprocess.PIPE,
                                stdout=subprocess.PIPE, stderr=subprocess.PIPE, env=env)
        handle = ProcessHandle(name=name, proc=proc)
        if on_exit is not None:
            handle.add_exit_listener(on_exit)

        for stream, routes, suffix in ((proc.stdout, stdout_routes, "stdout"), (proc.stderr, stderr_routes, "stderr")):
            t = threading.Thread(target=pump, args=(stream, list(routes)), name=f"{name}-{suffix}", daemon=True)
            t.start()
            handle._pumps.append(t)

        threading.Thread(target=self._watch_exit, args=(handle,), name=f"{name}-exit", daemon=True).start()
        return handle

    def _watch_exit(self, handle: ProcessHandle) -> None:
        rc = handle.proc.wait()
        # let the last lines reach the console before anyone reacts to the exit
        for t in handle._pumps:
            t.join(timeout=self.pump_join_timeout)
        log.debug("%s (pid=%s) exited with rc=%s", handle.name, handle.pid, rc)
        handle._fire_exit(rc)
