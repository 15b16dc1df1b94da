"""
supervisor.py — Runs and restarts the Mindustry process
-------------------------------------------------------
NOT_STARTED -> RUNNING -> (RESTARTING -> RUNNING)* -> EXITED

A restart always detaches the old child's exit listener and sends it SIGTERM
before anything else happens, so the old child's exit never ends the launcher.
Restarts requested while one is already in progress (typically a burst of
file-change events) are coalesced into a single follow-up restart whose flags
are the union of the queued ones. Mods are classified again on every restart;
the file watchers keep the classification made at launch.
"""

from __future__ import annotations
import sys
import threading
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import IO, Callable, List, Optional, Tuple
from .build import compile_directory
from .errors import ConflictingRestartFlagsError, LauncherError, MissingJarError
from .log_pipeline import Route, build_console_pipeline, build_file_pipeline, log_file_name
from .logging_setup import get_logger
from .mods import ModKind, ModSync, classify_mods
from .process_runner import ProcessHandle, ProcessRunner
from .state import LauncherState
from .watcher import PathWatcher

log = get_logger("mindustry.launcher.supervisor")


class Phase(Enum):
    NOT_STARTED = "not_started"
    RUNNING = "running"
    RESTARTING = "restarting"
    EXITED = "exited"


def compose_command(state: LauncherState) -> List[str]:
    return [state.java_binary, *state.jvm_args, "-jar", str(state.version.jar_path()), *state.mindustry_args]


class Supervisor:
    def __init__(self, state: LauncherState, runner: Optional[ProcessRunner] = None,
                 mod_sync: Optional[ModSync] = None, compiler: Callable[[Path], bool] = compile_directory,
                 watcher: Optional[PathWatcher] = None, out: Optional[IO[str]] = None):
        self.state = state
        self.runner = runner or ProcessRunner()
        self.mod_sync = mod_sync or ModSync(state.layout.mods_dir)
        self.compiler = compiler
        self.watcher = watcher or PathWatcher()
        self.out = out or sys.stdout

        self.phase = Phase.NOT_STARTED
        self.exit_code: Optional[int] = None
        self._lock = threading.Lock()
        self._pending: Optional[Tuple[bool, bool]] = None
        self._finished = threading.Event()

    @property
    def finished(self) -> bool:
        return self._finished.is_set()

    # ------------------------------------------------------------------ #
    def sync_mods(self) -> bool:
        return self.mod_sync.sync(
            self.state.external_mods,
            build=self.state.build_mods,
            concurrently=self.state.config.build_mods_concurrently,
        )

    def launch(self) -> ProcessHandle:
        """Start the first child. Mods must already be synced."""
        log.info("Launching Mindustry version %s", self.state.version.name())
        if self.state.mindustry_args:
            log.info("Arguments: %s", " ".join(self.state.mindustry_args))
        with self._lock:
            self.phase = Phase.RUNNING
        handle = self.start_process()
        if self.state.config.restart_automatically_on_mod_update:
            self._watch_mods()
        return handle

    def start_process(self) -> ProcessHandle:
        state = self.state
        if not state.version.exists():
            raise MissingJarError(f"Unable to access file \"{state.version.jar_path()}\".")
        self._open_log_file()
        stdout_routes = [Route(build_console_pipeline(state.config, state.username), self.out)]
        stderr_routes = [Route(build_console_pipeline(state.config, state.username), self.out)]
        if state.log_file is not None:
            stdout_routes.append(Route(build_file_pipeline(state.config, state.username), state.log_file))

        handle = self.runner.start("mindustry", compose_command(state), stdout_routes=stdout_routes,
                                   stderr_routes=stderr_routes, on_exit=self._on_exit)
        state.process = handle
        return handle

    def restart(self, rebuild_mods: bool = False, recompile: bool = False) -> bool:
        """
        Replace the running child. Returns False if the request was coalesced into
        an in-flight restart or the supervisor has already exited.
        """
        if rebuild_mods and recompile:
            raise ConflictingRestartFlagsError()
        return self._restart(rebuild_mods, recompile)

    def _restart(self, rebuild_mods: bool, recompile: bool) -> bool:
        with self._lock:
            if self.phase is Phase.EXITED:
                return False
            if self.phase is Phase.RESTARTING:
                log.info("Restart already in progress, queued another one.")
                queued_rebuild, queued_recompile = self._pending or (False, False)
                self._pending = (queued_rebuild or rebuild_mods, queued_recompile or recompile)
                return False
            self.phase = Phase.RESTARTING

        try:
            self._do_restart(rebuild_mods, recompile)
        finally:
            with self._lock:
                pending, self._pending = self._pending, None
                if self.phase is Phase.RESTARTING:
                    self.phase = Phase.RUNNING
        if pending is not None and self.phase is Phase.RUNNING:
            return self._restart(*pending)
        return True

    def try_restart(self, rebuild_mods: bool = False, recompile: bool = False) -> bool:
        """restart() for interactive callers: failures are logged, never raised."""
        try:
            return self.restart(rebuild_mods=rebuild_mods, recompile=recompile)
        except (LauncherError, OSError) as e:
            log.error("Restart failed: %s", e)
            return False

    def shutdown(self, code: int = 0) -> None:
        log.info("Exiting...")
        self._stop_process()
        self._finish(code)

    def send(self, text: str) -> bool:
        handle = self.state.process
        return handle is not None and handle.write_line(text)

    def wait(self, poll: float = 0.5) -> int:
        while not self._finished.wait(timeout=poll):
            pass
        return self.exit_code if self.exit_code is not None else 0

    # ------------------------------------------------------------------ #
    def _do_restart(self, rebuild_mods: bool, recompile: bool) -> None:
        # both flags only arrive from merged queued requests: recompile first, then rebuild
        if rebuild_mods and recompile:
            log.info("Recompiling client, then rebuilding mods and restarting...")
        elif rebuild_mods:
            log.info("Rebuilding mods and restarting...")
        elif recompile:
            log.info("Recompiling client...")
        else:
            log.info("Restarting...")

        self._stop_process()

        version = self.state.version
        if recompile:
            if version.is_source_directory:
                if not self.compiler(version.path):
                    log.error("Build failed.")
                    self._finish(1)
                    return
            else:
                log.error("Cannot compile, launched version did not come from a source directory.")

        self.state.build_mods = rebuild_mods
        # mod paths may have appeared or changed kind since the last start
        self.state.external_mods = classify_mods(self.state.config.external_mods)
        self.sync_mods()
        self.start_process()
        log.info("Started new process.")

    def _stop_process(self) -> None:
        handle, self.state.process = self.state.process, None
        if handle is not None:
            handle.remove_all_listeners()
            handle.terminate()

    def _on_exit(self, code: int) -> None:
        if code == 0:
            log.info("Process exited.")
        else:
            log.error("Process crashed with exit code %s!", code)
        self._finish(code)

    def _finish(self, code: int) -> None:
        with self._lock:
            if self.phase is Phase.EXITED:
                return
            self.phase = Phase.EXITED
            self.exit_code = code
        self.watcher.stop()
        self._close_log_file()
        self._finished.set()

    def _watch_mods(self) -> None:
        whole = self.state.config.watch_whole_java_mod_directory
        for mod in self.state.external_mods:
            if mod.kind is ModKind.INVALID:
                continue
            self.watcher.watch(mod.watch_path(whole), self._on_mod_changed)
        self.watcher.start()

    def _on_mod_changed(self, path: Path) -> None:
        log.info("File change detected! (%s)", path)
        self.try_restart(rebuild_mods=True)

    def _open_log_file(self) -> None:
        self._close_log_file()
        logging_cfg = self.state.config.logging
        if not logging_cfg.enabled:
            return
        path = Path(logging_cfg.path) / log_file_name(datetime.now())
        self.state.log_file = open(path, "a", encoding="utf-8", buffering=1)
        log.debug("Writing game log to %s", path)

    def _close_log_file(self) -> None:
        f, self.state.log_file = self.state.log_file, None
        if f is not None:
            f.close()
