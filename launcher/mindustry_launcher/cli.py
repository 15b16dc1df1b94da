from __future__ import annotations
import argparse
import os
import subprocess
import sys
import threading
from typing import List, Optional, Sequence, Tuple
from . import __version__
from .build import compile_directory
from .config_loader import load_config, write_default_config
from .console import Console
from .download import ProgressReporter
from .errors import LauncherError
from .fs_layout import Layout, build_layout, ensure_dirs
from .logging_setup import get_logger, setup_logging
from .mods import ModSync, classify_mods
from .process_runner import ProcessRunner
from .settings import Settings
from .state import LauncherState
from .supervisor import Supervisor
from .versions import Version, resolve_version

log = get_logger("mindustry.launcher.cli")

COMMANDS = ("launch", "config", "version", "v")


def split_passthrough(argv: Sequence[str]) -> Tuple[List[str], List[str], List[str]]:
    """
    `launcher args -- jvm args -- mindustry args`

    Everything after the first `--` goes to the JVM; if a second `--` appears,
    everything after it goes to Mindustry instead.
    """
    args = list(argv)
    if "--" not in args:
        return args, [], []
    i = args.index("--")
    launcher, rest = args[:i], args[i + 1:]
    if "--" in rest:
        j = rest.index("--")
        return launcher, rest[:j], rest[j + 1:]
    return launcher, rest, []


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mindustry", description="A launcher for Mindustry.")
    sub = parser.add_subparsers(dest="cmd", required=True)

    launch_p = sub.add_parser("launch", help="Launch Mindustry (default command)")
    launch_p.add_argument("--version", required=True,
                          help='Version to launch: vanilla, foo, foo-v6 or be, with a number or "latest", '
                               "or a custom version name from config.json")
    launch_p.add_argument("--compile", action="store_true",
                          help="Compile before launching, if the version points to a Mindustry source directory")
    launch_p.add_argument("--buildMods", dest="build_mods", action="store_true",
                          help="Compile Java mod directories before copying")

    sub.add_parser("config", help="Open the launcher's config.json in an editor")
    sub.add_parser("version", aliases=["v"], help="Print the launcher version")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    argv = sys.argv[1:] if argv is None else list(argv)
    launcher_argv, jvm_extra, app_extra = split_passthrough(argv)
    if not launcher_argv or launcher_argv[0] not in COMMANDS + ("-h", "--help"):
        launcher_argv = ["launch", *launcher_argv]
    args = build_parser().parse_args(launcher_argv)

    settings = Settings()
    try:
        layout = build_layout(settings)
        ensure_dirs(layout)
    except (LauncherError, OSError) as e:
        print(f"Failed to prepare launcher directories: {e}", file=sys.stderr)
        return 1
    setup_logging(settings, layout)

    if args.cmd in ("version", "v"):
        log.info("MindustryLauncher version %s", __version__)
        return 0
    if args.cmd == "config":
        return open_config(layout)
    if args.cmd == "launch":
        return launch(args, settings, layout, jvm_extra, app_extra)
    return 2


def open_config(layout: Layout) -> int:
    path = layout.config_path
    if not path.exists():
        write_default_config(path)
    editors = [e for e in (os.environ.get("EDITOR"), "code", "notepad") if e]
    for editor in editors:
        try:
            log.info("Opening %s", path)
            subprocess.run([editor, str(path)], check=True)
            log.info("Editor closed.")
            return 0
        except (OSError, subprocess.CalledProcessError) as e:
            log.error("Could not open the file with %s: %s", editor, e)
    try:
        editor = input("Please specify the editor to use: ").strip()
        subprocess.run([editor, str(path)], check=True)
    except (EOFError, OSError, subprocess.CalledProcessError) as e:
        log.error("Could not open the file: %s", e)
        return 1
    log.info("Editor closed.")
    return 0


def init_state(args, settings: Settings, layout: Layout, jvm_extra: List[str], app_extra: List[str]) -> LauncherState:
    config = load_config(layout, settings.username)
    version = resolve_version(args.version, config)
    return LauncherState(
        config=config,
        layout=layout,
        version=version,
        jvm_args=config.jvm_args + jvm_extra,
        mindustry_args=config.process_args + app_extra,
        external_mods=classify_mods(config.external_mods),
        username=settings.username,
        java_binary=settings.java_binary,
        build_mods=bool(args.build_mods),
    )


def prepare_version(version: Version, compile_first: bool = False) -> bool:
    """Make sure the jar for `version` is on disk: download it or compile it if needed."""
    if not version.is_source_directory and not version.exists():
        log.error('Unable to access file "%s".', version.jar_path())
        if version.is_custom:
            log.error("Cannot download: custom version specified.")
            return False
        if not version.download(progress=ProgressReporter(log)):
            return False
        if not version.exists():
            log.error("Downloaded file doesn't exist! Attempted to download version %s to %s",
                      version.name(), version.jar_path())
            return False

    if version.is_source_directory:
        if compile_first and not compile_directory(version.path):
            return False
        if not version.exists():
            hint = "" if compile_first else " You may need to compile first."
            log.error("Unable to find a Mindustry.jar in %s. Are you sure this is a Mindustry source directory?%s",
                      version.jar_path(), hint)
            return False
    elif compile_first:
        log.warning("--compile ignored: %s is not a source directory.", version.name())
    return True


def launch(args, settings: Settings, layout: Layout, jvm_extra: List[str], app_extra: List[str]) -> int:
    try:
        state = init_state(args, settings, layout, jvm_extra, app_extra)
    except LauncherError as e:
        log.error("%s", e)
        return 1

    if not prepare_version(state.version, compile_first=args.compile):
        return 1

    supervisor = Supervisor(state, runner=ProcessRunner(), mod_sync=ModSync(layout.mods_dir))
    supervisor.sync_mods()
    try:
        supervisor.launch()
    except (LauncherError, OSError) as e:
        log.exception("Launching Mindustry failed: %s", e)
        return 1

    console = Console(supervisor)
    threading.Thread(target=console.run, name="console-input", daemon=True).start()
    try:
        return supervisor.wait()
    except KeyboardInterrupt:
        supervisor.shutdown(130)
        return 130
