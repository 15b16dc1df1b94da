"""
mods.py — External mod staging
------------------------------
External mods are paths listed in config.json. Before every launch and restart
they are copied (and for Java mod projects optionally built) into Mindustry's
mods folder.
"""

from __future__ import annotations
import re
import shutil
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable, List, Optional
from .build import build_java_mod
from .errors import BuildError
from .logging_setup import get_logger

log = get_logger("mindustry.launcher.mods")

JAVA_BUILD_FILE = "build.gradle"
_DESKTOP_SUFFIX = re.compile(r"(?:Deskto(?:p)?)?\.jar$", re.IGNORECASE)


class ModKind(str, Enum):
    FILE = "file"
    DIR = "dir"
    JAVA = "java"
    INVALID = "invalid"


@dataclass(frozen=True)
class ExternalMod:
    path: Path
    kind: ModKind

    @property
    def build_output(self) -> Path:
        return self.path / "build" / "libs"

    def watch_path(self, whole_java_dir: bool = False) -> Path:
        if self.kind is ModKind.JAVA and not whole_java_dir:
            return self.build_output
        return self.path


def classify_mod(path) -> ExternalMod:
    p = Path(path).expanduser()
    if not p.exists():
        log.error('External mod "%s" does not exist.', p)
        return ExternalMod(p, ModKind.INVALID)
    if p.is_dir():
        return ExternalMod(p, ModKind.JAVA if (p / JAVA_BUILD_FILE).exists() else ModKind.DIR)
    return ExternalMod(p, ModKind.FILE)

def classify_mods(paths: Iterable) -> List[ExternalMod]:
    return [classify_mod(p) for p in paths]


def mod_jar_name(file_name: str) -> str:
    """`ExampleModDesktop.jar` -> `ExampleMod.jar`."""
    stem = _DESKTOP_SUFFIX.sub("", file_name)
    return f"{stem or Path(file_name).stem}.jar"

def copy_directory(source: Path, destination: Path, exclude: str = ".git") -> None:
    if source.name == exclude:
        return
    shutil.copytree(source, destination, ignore=shutil.ignore_patterns(exclude), dirs_exist_ok=True)


class ModSync:
    def __init__(self, mods_dir: Path, builder: Callable[[Path], None] = build_java_mod):
        self.mods_dir = mods_dir
        self.builder = builder

    def sync(self, mods: Iterable[ExternalMod], *, build: bool = False, concurrently: bool = False) -> bool:
        """Copy every valid mod into the mods folder. Returns False if any mod failed."""
        active = [m for m in mods if m.kind is not ModKind.INVALID]
        if not active:
            return True
        self.mods_dir.mkdir(parents=True, exist_ok=True)
        if concurrently and len(active) > 1:
            with ThreadPoolExecutor(max_workers=len(active)) as ex:
                results = list(ex.map(lambda m: self._sync_one(m, build), active))
        else:
            results = [self._sync_one(m, build) for m in active]
        return all(results)

    def _sync_one(self, mod: ExternalMod, build: bool) -> bool:
        try:
            if mod.kind is ModKind.JAVA:
                return self._copy_java_mod(mod, build)
            if mod.kind is ModKind.DIR:
                log.info('Copying mod directory "%s"', mod.path)
                copy_directory(mod.path, self.mods_dir / mod.path.name)
            else:
                log.info('Copying modfile "%s"', mod.path)
                shutil.copyfile(mod.path, self.mods_dir / mod.path.name)
            return True
        except BuildError as e:
            log.error("Build failed! %s", e)
        except OSError as e:
            log.error('Failed to copy mod "%s": %s', mod.path, e)
        return False

    def _find_built_jar(self, mod: ExternalMod) -> Optional[Path]:
        if not mod.build_output.is_dir():
            return None
        jars = sorted(p for p in mod.build_output.iterdir() if p.name.endswith(".jar"))
        return jars[0] if jars else None

    def _copy_java_mod(self, mod: ExternalMod, build: bool) -> bool:
        if build:
            log.info('Building and copying java mod directory "%s"', mod.path)
            started = time.monotonic()
            self.builder(mod.path)
            log.info('Built "%s" in %.0fms', mod.path.name, (time.monotonic() - started) * 1000)
        else:
            log.info('Copying java mod directory "%s"', mod.path)

        jar = self._find_built_jar(mod)
        if jar is None:
            hint = ("There may be an issue with your mod's build.gradle file." if build else
                    'This may be because the mod has not been built yet. Run "gradlew jar" to build the mod, '
                    "or specify --buildMods.")
            log.error('Java mod directory "%s" does not have a mod file in build/libs/, skipping copying. %s',
                      mod.path, hint)
            return False
        shutil.copyfile(jar, self.mods_dir / mod_jar_name(jar.name))
        return True
