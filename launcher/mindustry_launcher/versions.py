"""
versions.py — Mapping user-typed version names to Mindustry jars
----------------------------------------------------------------
A version string is either a custom name from config.json (a jar file or a
Mindustry source checkout) or `<family prefix><number>`, e.g. `146`,
`be-25000`, `foo-latest`. Family versions live in the jar folder as
`v<prefix><number>.jar` and can be downloaded from GitHub releases.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Pattern, Sequence, Tuple
from .download import ProgressCallback, download_file
from .errors import (InvalidCustomVersionError, InvalidVersionError, LatestVersionLookupError, LogicError,
                     MissingBuildDescriptorError, NetworkError)
from .logging_setup import get_logger
from .models import LauncherConfig
from .redirects import resolve_redirect

log = get_logger("mindustry.launcher.versions")

LATEST = "latest"
BUILT_JAR_LOCATION = Path("desktop") / "build" / "libs" / "Mindustry.jar"
BUILD_DESCRIPTOR = Path("desktop") / "build.gradle"

Resolver = Callable[[str], str]
Downloader = Callable[[str, Path, Optional[ProgressCallback]], object]


@dataclass(frozen=True)
class VersionFamily:
    name: str
    url_template: str
    latest_url: str
    # first capture group is the version number inside the resolved latest-release URL
    latest_pattern: Pattern[str]
    prefix: str
    number_pattern: Pattern[str]

    def url(self, number: str) -> str:
        return self.url_template.format(number=number)

    def accepts(self, number: str) -> bool:
        return self.number_pattern.fullmatch(number) is not None

    def jar_name(self, number: str) -> str:
        return f"v{self.prefix}{number}.jar"


_BUILD_NUMBER = re.compile(r"\d+|latest")
_TAG_NUMBER = re.compile(r"/tag/(\d+)")

FOO = VersionFamily(
    name="foo",
    url_template="https://github.com/mindustry-antigrief/mindustry-client-v7-builds/releases/download/{number}/desktop.jar",
    latest_url="https://github.com/mindustry-antigrief/mindustry-client-v7-builds/releases/latest",
    latest_pattern=_TAG_NUMBER,
    prefix="foo-",
    number_pattern=_BUILD_NUMBER,
)
FOO_V6 = VersionFamily(
    name="foo-v6",
    url_template="https://github.com/mindustry-antigrief/mindustry-client-v6-builds/releases/download/{number}/desktop.jar",
    latest_url="https://github.com/mindustry-antigrief/mindustry-client-v6-builds/releases/latest",
    latest_pattern=_TAG_NUMBER,
    prefix="foo-v6-",
    number_pattern=_BUILD_NUMBER,
)
BE = VersionFamily(
    name="be",
    url_template="https://github.com/Anuken/MindustryBuilds/releases/download/{number}/Mindustry-BE-Desktop-{number}.jar",
    latest_url="https://github.com/Anuken/MindustryBuilds/releases/latest",
    latest_pattern=_TAG_NUMBER,
    prefix="be-",
    number_pattern=_BUILD_NUMBER,
)
VANILLA = VersionFamily(
    name="vanilla",
    url_template="https://github.com/Anuken/Mindustry/releases/download/v{number}/Mindustry.jar",
    latest_url="https://github.com/Anuken/Mindustry/releases/latest",
    latest_pattern=re.compile(r"/tag/v(\d+(?:\.\d+)?)"),
    prefix="",
    number_pattern=re.compile(r"\d+(?:\.\d+)?|latest"),
)

VERSION_FAMILIES: Tuple[VersionFamily, ...] = (FOO, FOO_V6, BE, VANILLA)


def match_family(version: str, families: Sequence[VersionFamily] = VERSION_FAMILIES) -> Tuple[VersionFamily, str]:
    """Find the family for `version`. The longest matching prefix wins."""
    candidates = [
        (family, version[len(family.prefix):])
        for family in families
        if version.startswith(family.prefix) and family.accepts(version[len(family.prefix):])
    ]
    if not candidates:
        raise InvalidVersionError(version)
    return max(candidates, key=lambda c: len(c[0].prefix))


def get_latest_version(family: VersionFamily, resolver: Optional[Resolver] = None) -> str:
    resolver = resolver or resolve_redirect
    resolved = resolver(family.latest_url)
    m = family.latest_pattern.search(resolved)
    if m is None or not m.group(1):
        raise LatestVersionLookupError(
            f"regex /{family.latest_pattern.pattern}/ did not match resolved url {resolved} for version {family.name}")
    return m.group(1)


@dataclass(frozen=True)
class Version:
    path: Path
    is_custom: bool = False
    is_source_directory: bool = False
    family: Optional[VersionFamily] = None
    number: Optional[str] = None

    def jar_path(self) -> Path:
        if self.is_source_directory:
            return self.path / BUILT_JAR_LOCATION
        return self.path

    def exists(self) -> bool:
        return self.jar_path().exists()

    def name(self) -> str:
        if self.is_source_directory:
            return f"[source directory at {self.path}]"
        if self.is_custom:
            return "[custom version]"
        if self.family is None or self.number is None:
            raise LogicError("version number should exist")
        return f"{self.family.name}-{self.number}"

    def get_download_url(self, resolver: Optional[Resolver] = None) -> str:
        if self.family is None or self.number is None:
            raise LogicError(f"Cannot look up a download url for {self.name()}")
        if self.number == LATEST:
            raise LogicError("version's number was 'latest'.")
        log.info("Looking up download url for %s version %s", self.family.name, self.number)
        return (resolver or resolve_redirect)(self.family.url(self.number))

    def download(self, resolver: Optional[Resolver] = None, downloader: Optional[Downloader] = None,
                 progress: Optional[ProgressCallback] = None) -> bool:
        """
        Download the jar next to its final path as `.tmp`, then move it into place.
        Returns False (after logging why) on any network or filesystem failure.
        """
        downloader = downloader or download_file
        target = self.jar_path()
        tmp = target.with_name(target.name + ".tmp")
        try:
            url = self.get_download_url(resolver)
            log.info("Downloading...")
            downloader(url, tmp, progress)
            os.replace(tmp, target)
        except (NetworkError, OSError) as e:
            log.error("Download failed: %s", e)
            if tmp.exists():
                tmp.unlink()
            return False
        log.info("File downloaded to %s.", target)
        return True


def resolve_version(version: str, config: LauncherConfig, resolver: Optional[Resolver] = None) -> Version:
    """Turn a user-typed version string into a Version. `latest` is resolved over the network."""
    custom = config.mindustry_jars.custom_version_names
    if version in custom:
        path = Path(custom[version]).expanduser()
        if not path.exists():
            raise InvalidCustomVersionError(
                f"Invalid custom version {version}: specified filepath {path} does not exist.")
        if path.is_dir():
            if not (path / BUILD_DESCRIPTOR).is_file():
                raise MissingBuildDescriptorError(
                    f"Invalid custom version {version}: Unable to find a build.gradle in {path / BUILD_DESCRIPTOR}. "
                    "Are you sure this is a Mindustry source directory?")
            return Version(path=path, is_custom=True, is_source_directory=True)
        return Version(path=path, is_custom=True)

    family, number = match_family(version)
    if number == LATEST:
        log.info("Getting latest %s version...", family.name)
        number = get_latest_version(family, resolver)
        log.info("Resolved version %s to %s-%s", version, family.name, number)

    folder = Path(config.mindustry_jars.folder_path)
    return Version(path=folder / family.jar_name(number), family=family, number=number)

