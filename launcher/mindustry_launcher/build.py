from __future__ import annotations
import os
import subprocess
import sys
from pathlib import Path
from typing import IO, List, Optional
from .errors import BuildError
from .log_pipeline import ANSI, LinePipeline, prefix_stage
from .logging_setup import get_logger
from .versions import BUILD_DESCRIPTOR

log = get_logger("mindustry.launcher.build")

GRADLE_PREFIX = f"{ANSI['brightpurple']}[Gradle]{ANSI['reset']}"

def gradle_wrapper(directory: Path) -> str:
    name = "gradlew.bat" if os.name == "nt" else "gradlew"
    return str(directory / name)

def _stream(cmd: List[str], cwd: Path, out: IO[str]) -> int:
    pipeline = LinePipeline([prefix_stage(GRADLE_PREFIX)])
    with subprocess.Popen(cmd, cwd=str(cwd), stdout=subprocess.PIPE, stderr=subprocess.STDOUT,
                          text=True, errors="replace", bufsize=1) as proc:
        for line in proc.stdout:
            out.write(pipeline.apply(line.rstrip("\r\n")) + "\n")
        out.flush()
        return proc.wait()

def compile_directory(path: Path, out: Optional[IO[str]] = None) -> bool:
    """Run `gradlew desktop:dist` in a Mindustry source checkout. Blocks until gradle exits."""
    if not (path / BUILD_DESCRIPTOR).is_file():
        log.error("Unable to find a build.gradle in %s. Are you sure this is a Mindustry source directory?",
                  path / BUILD_DESCRIPTOR)
        return False
    log.info("Compiling...")
    try:
        rc = _stream([gradle_wrapper(path), "desktop:dist"], path, out or sys.stdout)
    except OSError as e:
        log.error("Could not start gradle in %s: %s", path, e)
        return False
    if rc == 0:
        log.info("Compiled successfully.")
        return True
    log.error("Compiling failed (rc=%s).", rc)
    return False

def build_java_mod(path: Path) -> None:
    cmd = [gradle_wrapper(path), "jar"]
    log.debug("Gradle: %s (cwd=%s)", " ".join(cmd), path)
    try:
        proc = subprocess.run(cmd, cwd=str(path), capture_output=True, text=True, errors="replace")
    except OSError as e:
        raise BuildError(f"Could not start gradle in {path}: {e}") from e
    if proc.stdout:
        log.debug("gradle stdout: %s", proc.stdout[-4000:])
    if proc.stderr:
        log.debug("gradle stderr: %s", proc.stderr[-4000:])
    if proc.returncode != 0:
        raise BuildError(f"Build failed for {path} (rc={proc.returncode}).", proc.returncode)
