from __future__ import annotations
import json
import re
from pathlib import Path
from typing import Any, Optional
from pydantic import ValidationError
from .errors import ConfigError
from .fs_layout import Layout
from .models import LauncherConfig
from .logging_setup import get_logger

log = get_logger("mindustry.launcher.config")

_LINE_COMMENT = re.compile(r"^[ \t]*//")
_BLOCK_COMMENT = re.compile(r"/\*.*?\*/")

CONFIG_HEADER = "// Mindustry launcher settings. Lines starting with // are ignored.\n"

def parse_jsonc(text: str) -> Any:
    """JSON with whole-line // comments and single-line /* */ comments."""
    lines = [line for line in text.split("\n") if not _LINE_COMMENT.match(line)]
    return json.loads("\n".join(_BLOCK_COMMENT.sub("", line) for line in lines))

def write_default_config(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    body = json.dumps(LauncherConfig().model_dump(by_alias=True), indent="\t")
    path.write_text(CONFIG_HEADER + body + "\n", encoding="utf-8")

def _resolve_dir(value: str, default: Path, what: str) -> Path:
    if not value:
        default.mkdir(parents=True, exist_ok=True)
        return default
    p = Path(value).expanduser()
    if not p.exists():
        raise ConfigError(f'{what} "{p}" does not exist.')
    if not p.is_dir():
        raise ConfigError(f'{what} "{p}" is not a directory.')
    return p

def load_config(layout: Layout, username: Optional[str] = None) -> LauncherConfig:
    path = layout.config_path
    if not path.exists():
        log.info("No config.json file found, creating one. If this is your first launch, this is fine.")
        write_default_config(path)

    log.info("Loading config: %s", path)
    try:
        data = parse_jsonc(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise ConfigError(f"Could not read {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("Config root must be an object")

    try:
        cfg = LauncherConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid settings: {e}") from e

    cfg.mindustry_jars.folder_path = str(_resolve_dir(
        cfg.mindustry_jars.folder_path, layout.default_versions_dir, "Path to put Mindustry jars"))
    if cfg.logging.enabled:
        cfg.logging.path = str(_resolve_dir(cfg.logging.path, layout.default_logs_dir, "Logging path"))

    if username is None and cfg.logging.remove_username:
        log.error("Could not determine your username, disabling logging.removeUsername")
        cfg.logging.remove_username = False
    return cfg
