from __future__ import annotations
from pathlib import Path
from typing import Optional
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # Overrides the platform Mindustry data directory (see fs_layout.default_data_dir)
    data_dir: Optional[Path] = Field(default=None, alias="MINDUSTRY_DATA_DIR")
    config_path: Optional[Path] = Field(default=None, alias="MINDUSTRY_LAUNCHER_CONFIG")
    java_binary: str = Field(default="java", alias="MINDUSTRY_JAVA")

    username: Optional[str] = Field(default=None, validation_alias=AliasChoices("username", "USERNAME", "USER"))

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_json: bool = Field(default=False, alias="LOG_JSON")

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)
