from __future__ import annotations
from typing import Dict, List
from pydantic import BaseModel, ConfigDict, Field, field_validator


class JarsConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # empty means <launcher dir>/versions
    folder_path: str = Field(default="", alias="folderPath")
    custom_version_names: Dict[str, str] = Field(default_factory=dict, alias="customVersionNames")

    @field_validator("custom_version_names")
    @classmethod
    def _no_spaces_in_paths(cls, v: Dict[str, str]) -> Dict[str, str]:
        for version, jar_name in v.items():
            if " " in jar_name:
                raise ValueError(f"Jar name for version {version} contains a space.")
        return v

class LoggingConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # empty means <launcher dir>/logs
    path: str = ""
    enabled: bool = True
    remove_username: bool = Field(default=True, alias="removeUsername")
    remove_uuids: bool = Field(default=True, alias="removeUUIDs")

class LauncherConfig(BaseModel):
    """Contents of the launcher's config.json."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    mindustry_jars: JarsConfig = Field(default_factory=JarsConfig, alias="mindustryJars")
    jvm_args: List[str] = Field(default_factory=list, alias="jvmArgs")
    process_args: List[str] = Field(default_factory=list, alias="processArgs")
    external_mods: List[str] = Field(default_factory=list, alias="externalMods")
    restart_automatically_on_mod_update: bool = Field(default=True, alias="restartAutomaticallyOnModUpdate")
    watch_whole_java_mod_directory: bool = Field(default=False, alias="watchWholeJavaModDirectory")
    build_mods_concurrently: bool = Field(default=False, alias="buildModsConcurrently")
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
