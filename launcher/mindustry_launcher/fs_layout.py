from __future__ import annotations
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional
from .errors import ConfigError
from .settings import Settings

@dataclass(frozen=True)
class Layout:
    mindustry_dir: Path
    mods_dir: Path
    launcher_dir: Path
    config_path: Path
    default_versions_dir: Path
    default_logs_dir: Path

def default_data_dir(platform: Optional[str] = None, env: Optional[Mapping[str, str]] = None,
                     home: Optional[Path] = None) -> Path:
    """Where Mindustry keeps its saves and mods on this platform."""
    platform = platform or sys.platform
    env = os.environ if env is None else env
    home = home or Path.home()
    if platform == "win32":
        return Path(env["APPDATA"]) / "Mindustry"
    if platform == "darwin":
        return home / "Library" / "Application Support" / "Mindustry"
    if platform.startswith("linux"):
        xdg = env.get("XDG_DATA_HOME") or str(home / ".local" / "share")
        return Path(xdg) / "Mindustry"
    raise ConfigError(f"Unsupported platform {platform}")

def build_layout(settings: Settings) -> Layout:
    mindustry = settings.data_dir or default_data_dir()
    launcher = mindustry / "launcher"
    return Layout(
        mindustry_dir=mindustry,
        mods_dir=mindustry / "mods",
        launcher_dir=launcher,
        config_path=settings.config_path or (launcher / "config.json"),
        default_versions_dir=launcher / "versions",
        default_logs_dir=launcher / "logs",
    )

def ensure_dirs(layout: Layout) -> None:
    for p in [layout.mindustry_dir, layout.mods_dir, layout.launcher_dir]:
        p.mkdir(parents=True, exist_ok=True)
