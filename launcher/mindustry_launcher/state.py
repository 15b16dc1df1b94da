from __future__ import annotations
from dataclasses import dataclass, field
from typing import IO, List, Optional
from .fs_layout import Layout
from .models import LauncherConfig
from .mods import ExternalMod
from .process_runner import ProcessHandle
from .versions import Version

@dataclass
class LauncherState:
    """Everything one launcher run works with. Passed explicitly, never global."""
    config: LauncherConfig
    layout: Layout
    version: Version
    jvm_args: List[str] = field(default_factory=list)
    mindustry_args: List[str] = field(default_factory=list)
    external_mods: List[ExternalMod] = field(default_factory=list)
    username: Optional[str] = None
    java_binary: str = "java"
    build_mods: bool = False

    # replaced on every (re)start
    process: Optional[ProcessHandle] = None
    log_file: Optional[IO[str]] = None
