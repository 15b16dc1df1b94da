"""
Tests for the process supervisor and the interactive console.

The runner is faked so no JVM is started; handles are real ProcessHandle
objects around mocked Popen instances, so listener bookkeeping is the real one.
"""

import io
import os
import logging
import pytest
from pathlib import Path
from unittest.mock import Mock

from mindustry_launcher.console import Command, Console, parse_command
from mindustry_launcher.errors import ConflictingRestartFlagsError
from mindustry_launcher.fs_layout import Layout
from mindustry_launcher.models import LauncherConfig
from mindustry_launcher.mods import ExternalMod, ModKind, ModSync, classify_mods
from mindustry_launcher.process_runner import ProcessHandle
from mindustry_launcher.state import LauncherState
from mindustry_launcher.supervisor import Phase, Supervisor, compose_command
from mindustry_launcher.versions import VANILLA, Version
from mindustry_launcher.watcher import PathWatcher


def fake_proc(pid=4242):
    proc = Mock()
    proc.pid = pid
    proc.poll.return_value = None
    proc.stdin.closed = False
    return proc


def source_checkout(root):
    """Create a compiled Mindustry source directory under `root`."""
    jar = root / "desktop" / "build" / "libs" / "Mindustry.jar"
    jar.parent.mkdir(parents=True)
    jar.write_bytes(b"PK")
    return Version(path=root, is_custom=True, is_source_directory=True)


class FakeRunner:
    def __init__(self):
        self.handles = []
        self.commands = []

    def start(self, name, cmd, *, stdout_routes=(), stderr_routes=(), on_exit=None, cwd=None, env=None):
        handle = ProcessHandle(name, fake_proc(pid=1000 + len(self.handles)))
        if on_exit is not None:
            handle.add_exit_listener(on_exit)
        self.handles.append(handle)
        self.commands.append(cmd)
        return handle


@pytest.fixture
def layout(tmp_path):
    launcher = tmp_path / "Mindustry" / "launcher"
    return Layout(
        mindustry_dir=tmp_path / "Mindustry",
        mods_dir=tmp_path / "Mindustry" / "mods",
        launcher_dir=launcher,
        config_path=launcher / "config.json",
        default_versions_dir=launcher / "versions",
        default_logs_dir=launcher / "logs",
    )


@pytest.fixture
def config(tmp_path):
    """Config with game logging and auto restart turned off."""
    cfg = LauncherConfig()
    cfg.mindustry_jars.folder_path = str(tmp_path / "versions")
    cfg.logging.enabled = False
    cfg.restart_automatically_on_mod_update = False
    return cfg


@pytest.fixture
def state(config, layout, tmp_path):
    jar = tmp_path / "versions" / "v146.jar"
    jar.parent.mkdir(parents=True, exist_ok=True)
    jar.write_bytes(b"PK")
    return LauncherState(
        config=config,
        layout=layout,
        version=Version(path=jar, family=VANILLA, number="146"),
        jvm_args=["-Xmx2g"],
        mindustry_args=["-debug"],
    )


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def mod_sync():
    sync = Mock()
    sync.sync.return_value = True
    return sync


@pytest.fixture
def compiler():
    return Mock(return_value=True)


@pytest.fixture
def supervisor(state, runner, mod_sync, compiler):
    return Supervisor(state, runner=runner, mod_sync=mod_sync, compiler=compiler,
                      watcher=Mock(), out=io.StringIO())


class TestComposeCommand:
    """Test the java command line built for each start."""

    def test_jvm_args_jar_then_app_args(self, state):
        """JVM args go before -jar, Mindustry args after the jar path."""
        assert compose_command(state) == ["java", "-Xmx2g", "-jar", str(state.version.jar_path()), "-debug"]


class TestLaunch:
    """Test the first start of the game and its exit handling."""

    def test_launch_tracks_one_process(self, supervisor, state, runner):
        """Launch should record the handle with a single exit listener."""
        handle = supervisor.launch()
        assert state.process is handle
        assert handle.listener_count == 1
        assert supervisor.phase is Phase.RUNNING

    def test_clean_exit_finishes_with_zero(self, supervisor, state):
        handle = supervisor.launch()
        handle._fire_exit(0)
        assert supervisor.finished
        assert supervisor.exit_code == 0
        assert supervisor.phase is Phase.EXITED
        assert supervisor.wait() == 0

    def test_crash_code_is_forwarded(self, supervisor, caplog):
        """A crashing child's exit code becomes the launcher's."""
        supervisor.launch()._fire_exit(137)
        assert supervisor.exit_code == 137
        assert "crashed with exit code 137" in caplog.text

    def test_watches_mods_when_enabled(self, supervisor, state, tmp_path):
        """Valid mods are watched; Java mods through their build/libs folder."""
        state.config.restart_automatically_on_mod_update = True
        java = ExternalMod(tmp_path / "JavaMod", ModKind.JAVA)
        state.external_mods = [
            ExternalMod(tmp_path / "a.zip", ModKind.FILE),
            java,
            ExternalMod(tmp_path / "gone", ModKind.INVALID),
        ]
        supervisor.launch()
        watched = [c.args[0] for c in supervisor.watcher.watch.call_args_list]
        assert watched == [tmp_path / "a.zip", tmp_path / "JavaMod" / "build" / "libs"]
        supervisor.watcher.start.assert_called_once()

    def test_watch_callback_triggers_rebuild(self, supervisor, state, mod_sync):
        """A file change restarts with mod building on."""
        supervisor.launch()
        supervisor._on_mod_changed(Path("/mods/x.zip"))
        assert state.build_mods is True
        assert mod_sync.sync.call_args.kwargs["build"] is True

    def test_log_file_per_start(self, supervisor, state, tmp_path):
        """Each start opens a fresh game log and closes the previous one."""
        logs = tmp_path / "logs"
        logs.mkdir()
        state.config.logging.enabled = True
        state.config.logging.path = str(logs)
        supervisor.launch()
        first = state.log_file
        assert first is not None and not first.closed
        supervisor.restart()
        assert first.closed
        assert state.log_file is not None and not state.log_file.closed
        assert len(list(logs.glob("*.txt"))) >= 1


class TestRestart:
    """Test restarting the child, with and without rebuilds or recompiles."""

    def test_old_handle_is_detached_and_replaced(self, supervisor, state, runner):
        """The old child loses its listeners and is terminated before the new one starts."""
        old = supervisor.launch()
        assert supervisor.restart() is True
        assert old.listener_count == 0
        old.proc.terminate.assert_called_once()
        assert state.process is runner.handles[-1]
        assert state.process is not old
        assert state.process.listener_count == 1
        assert supervisor.phase is Phase.RUNNING

    def test_old_child_exit_does_not_end_launcher(self, supervisor):
        old = supervisor.launch()
        supervisor.restart()
        old._fire_exit(143)
        assert not supervisor.finished

    def test_rebuild_passes_build_flag_to_mod_sync(self, supervisor, state, mod_sync):
        supervisor.launch()
        supervisor.restart(rebuild_mods=True)
        assert state.build_mods is True
        mod_sync.sync.assert_called_with(state.external_mods, build=True, concurrently=False)

    def test_plain_restart_copies_without_building(self, supervisor, state, mod_sync):
        """A plain restart clears a build flag left over from launch."""
        state.build_mods = True
        supervisor.launch()
        supervisor.restart()
        assert mod_sync.sync.call_args.kwargs["build"] is False

    def test_restart_reclassifies_mods(self, state, runner, compiler, tmp_path):
        """A mod path created while the game runs is copied by the next restart."""
        later = tmp_path / "later.zip"
        mods_dir = tmp_path / "mods"
        state.config.external_mods = [str(later)]
        state.external_mods = classify_mods(state.config.external_mods)
        assert [m.kind for m in state.external_mods] == [ModKind.INVALID]

        supervisor = Supervisor(state, runner=runner, mod_sync=ModSync(mods_dir), compiler=compiler,
                                watcher=Mock(), out=io.StringIO())
        supervisor.launch()
        later.write_bytes(b"PK")
        assert supervisor.restart() is True
        assert [m.kind for m in state.external_mods] == [ModKind.FILE]
        assert (mods_dir / "later.zip").read_bytes() == b"PK"

    def test_restart_keeps_launch_time_watchers(self, supervisor, state, tmp_path):
        """Reclassifying on restart does not register new watchers."""
        state.config.restart_automatically_on_mod_update = True
        mod = tmp_path / "a.zip"
        mod.write_bytes(b"PK")
        state.config.external_mods = [str(mod)]
        state.external_mods = classify_mods(state.config.external_mods)
        supervisor.launch()
        supervisor.restart()
        assert supervisor.watcher.watch.call_count == 1
        supervisor.watcher.start.assert_called_once()

    def test_conflicting_flags_rejected(self, supervisor, runner):
        """Rebuild and recompile together are refused without touching the child."""
        supervisor.launch()
        with pytest.raises(ConflictingRestartFlagsError):
            supervisor.restart(rebuild_mods=True, recompile=True)
        assert len(runner.handles) == 1
        assert supervisor.try_restart(rebuild_mods=True, recompile=True) is False

    def test_recompile_source_directory(self, supervisor, state, compiler, runner, tmp_path):
        state.version = source_checkout(tmp_path / "src")
        supervisor.launch()
        supervisor.restart(recompile=True)
        compiler.assert_called_once_with(tmp_path / "src")
        assert len(runner.handles) == 2

    def test_failed_recompile_exits_with_one(self, supervisor, state, compiler, runner, tmp_path):
        """A failed build ends the launcher with code 1 and no child running."""
        state.version = source_checkout(tmp_path / "src")
        compiler.return_value = False
        old = supervisor.launch()
        supervisor.restart(recompile=True)
        assert supervisor.exit_code == 1
        assert supervisor.phase is Phase.EXITED
        assert len(runner.handles) == 1
        assert old.listener_count == 0
        assert state.process is None

    def test_recompile_without_source_is_plain_restart(self, supervisor, compiler, runner, caplog):
        supervisor.launch()
        supervisor.restart(recompile=True)
        compiler.assert_not_called()
        assert "Cannot compile" in caplog.text
        assert len(runner.handles) == 2
        assert not supervisor.finished

    def test_overlapping_restarts_are_coalesced(self, supervisor, mod_sync, runner):
        """Requests made during a restart fold into one follow-up restart."""
        supervisor.launch()
        builds = []
        nested = []

        def sync(mods, build, concurrently):
            builds.append(build)
            if len(builds) == 1:
                # a file-change event arriving mid-restart
                nested.append(supervisor.restart(rebuild_mods=True))
                nested.append(supervisor.restart(rebuild_mods=True))
            return True

        mod_sync.sync.side_effect = sync
        assert supervisor.restart() is True
        assert nested == [False, False]
        assert builds == [False, True]
        assert len(runner.handles) == 3
        assert supervisor.phase is Phase.RUNNING

    def test_queued_rebuild_survives_later_plain_restart(self, supervisor, mod_sync, runner):
        """A queued rebuild is kept when a plain restart is queued after it."""
        supervisor.launch()
        builds = []
        nested = []

        def sync(mods, build, concurrently):
            builds.append(build)
            if len(builds) == 1:
                nested.append(supervisor.restart(rebuild_mods=True))
                nested.append(supervisor.restart())
            return True

        mod_sync.sync.side_effect = sync
        assert supervisor.restart() is True
        assert nested == [False, False]
        assert builds == [False, True]
        assert len(runner.handles) == 3

    def test_queued_rebuild_and_recompile_run_together(self, supervisor, state, mod_sync, compiler,
                                                        runner, tmp_path):
        """Queued rebuild and recompile requests merge: compile once, then build mods."""
        state.version = source_checkout(tmp_path / "src")
        supervisor.launch()
        builds = []

        def sync(mods, build, concurrently):
            builds.append(build)
            if len(builds) == 1:
                supervisor.restart(rebuild_mods=True)
                supervisor.restart(recompile=True)
            return True

        mod_sync.sync.side_effect = sync
        assert supervisor.restart() is True
        compiler.assert_called_once_with(tmp_path / "src")
        assert builds == [False, True]
        assert len(runner.handles) == 3
        assert supervisor.phase is Phase.RUNNING

    def test_restart_after_exit_is_ignored(self, supervisor, runner):
        supervisor.launch()._fire_exit(0)
        assert supervisor.restart() is False
        assert len(runner.handles) == 1

    def test_missing_jar_keeps_supervisor_alive(self, supervisor, state, runner, caplog):
        """A jar deleted while running fails the restart but not the launcher."""
        supervisor.launch()
        state.version.jar_path().unlink()
        assert supervisor.try_restart() is False
        assert "Unable to access file" in caplog.text
        assert len(runner.handles) == 1
        assert not supervisor.finished

    def test_spawn_failure_is_logged_by_try_restart(self, supervisor, runner, caplog):
        supervisor.launch()
        runner.start = Mock(side_effect=FileNotFoundError("java"))
        assert supervisor.try_restart() is False
        assert "Restart failed" in caplog.text
        assert supervisor.phase is Phase.RUNNING


class TestShutdown:
    """Test stopping the launcher from the console."""

    def test_shutdown_detaches_and_terminates(self, supervisor, state):
        """Shutdown terminates the child without its exit being reported."""
        handle = supervisor.launch()
        supervisor.shutdown(0)
        assert handle.listener_count == 0
        handle.proc.terminate.assert_called_once()
        assert state.process is None
        assert supervisor.exit_code == 0
        supervisor.watcher.stop.assert_called_once()


class TestParseCommand:
    """Test the console command grammar."""

    @pytest.mark.parametrize("line,expected", [
        ("restart", Command.RESTART),
        ("RS", Command.RESTART),
        ("rebuild", Command.REBUILD),
        ("rb\n", Command.REBUILD),
        ("rc", Command.RECOMPILE),
        ("recompile now", Command.RECOMPILE),
        ("?", Command.HELP),
        ("h", Command.HELP),
        ("quit", Command.EXIT),
        ("e", Command.EXIT),
        ("- status", Command.PASS),
        ("xyz", Command.UNKNOWN),
    ])
    def test_aliases(self, line, expected):
        """Every alias is matched case-insensitively on the first word."""
        assert parse_command(line)[0] is expected

    def test_rest_is_verbatim(self):
        """Text after the command word is passed on untouched."""
        assert parse_command("pass  say  hello \r\n") == (Command.PASS, " say  hello ")

    def test_blank_line(self):
        assert parse_command("   \n") == (None, "")


class TestConsole:
    """Test console commands against a running supervisor."""

    def test_rb_rebuilds_mods_then_restarts(self, supervisor, state, mod_sync, runner):
        supervisor.launch()
        assert Console(supervisor).handle("rb") is Command.REBUILD
        mod_sync.sync.assert_called_once_with(state.external_mods, build=True, concurrently=False)
        assert len(runner.handles) == 2

    def test_unknown_command_changes_nothing(self, supervisor, state, mod_sync, caplog):
        """An unknown command only logs; the child keeps running."""
        handle = supervisor.launch()
        assert Console(supervisor).handle("xyz") is Command.UNKNOWN
        assert "Unknown command" in caplog.text
        assert state.process is handle
        mod_sync.sync.assert_not_called()
        assert not supervisor.finished

    def test_pass_writes_to_child_stdin(self, supervisor):
        """`p <text>` writes the text and a newline to the game."""
        handle = supervisor.launch()
        Console(supervisor).handle("p host Ancient Caldera\n")
        handle.proc.stdin.write.assert_called_once_with(b"host Ancient Caldera\n")

    def test_pass_without_writable_stdin(self, supervisor, caplog):
        handle = supervisor.launch()
        handle.proc.stdin.closed = True
        Console(supervisor).handle("pass hi")
        assert "Stream not writeable" in caplog.text

    def test_help(self, supervisor, caplog):
        caplog.set_level(logging.INFO)
        Console(supervisor).handle("help")
        assert "restart/rs" in caplog.text

    def test_exit_ends_with_zero(self, supervisor):
        handle = supervisor.launch()
        Console(supervisor).handle("exit")
        assert supervisor.exit_code == 0
        assert handle.listener_count == 0

    def test_run_stops_after_exit(self, supervisor, runner):
        """Lines after `q` are not processed."""
        supervisor.launch()
        Console(supervisor).run(io.StringIO("rs\nq\nrs\n"))
        assert len(runner.handles) == 2
        assert supervisor.finished


class TestPathWatcher:
    """Test mtime polling of watched mod paths."""

    def test_reports_modified_paths_once(self, tmp_path):
        """A change is reported on the first check after it, not again."""
        f = tmp_path / "mod.jar"
        f.write_bytes(b"1")
        seen = []
        watcher = PathWatcher()
        watcher.watch(f, seen.append)
        assert watcher.check() == []

        st = f.stat()
        os.utime(f, (st.st_atime, st.st_mtime + 10))
        assert watcher.check() == [f]
        assert watcher.check() == []
        assert seen == [f]

    def test_created_and_deleted_paths_count_as_changes(self, tmp_path):
        f = tmp_path / "later.jar"
        watcher = PathWatcher()
        seen = []
        watcher.watch(f, seen.append)
        f.write_bytes(b"x")
        assert watcher.check() == [f]
        f.unlink()
        assert watcher.check() == [f]

    def test_stop_without_start(self):
        """Stopping a watcher that never started is harmless."""
        PathWatcher().stop()
