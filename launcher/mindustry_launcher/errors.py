from __future__ import annotations
from typing import Optional


class LauncherError(Exception):
    """Base class for every error the launcher reports to the user."""


# --- user input ---
class UserInputError(LauncherError):
    pass

class InvalidVersionError(UserInputError):
    def __init__(self, version: str):
        super().__init__(f"Invalid version {version}")
        self.version = version

class ConflictingRestartFlagsError(UserInputError):
    def __init__(self):
        super().__init__("Cannot rebuild mods and recompile in the same restart.")


# --- missing files ---
class ResourceMissingError(LauncherError):
    pass

class InvalidCustomVersionError(ResourceMissingError):
    pass

class MissingBuildDescriptorError(ResourceMissingError):
    pass

class MissingJarError(ResourceMissingError):
    pass


# --- network ---
class NetworkError(LauncherError):
    pass

class NotFoundError(NetworkError):
    pass

class UnexpectedStatusError(NetworkError):
    def __init__(self, status: int, expected: str = "302"):
        super().__init__(f"Expected status {expected}, got {status}")
        self.status = status

class MissingLocationError(NetworkError):
    def __init__(self, url: Optional[str] = None):
        super().__init__("Server did not respond with redirect location.")
        self.url = url

class LatestVersionLookupError(NetworkError):
    pass

class DownloadError(NetworkError):
    pass


# --- build / config / defects ---
class BuildError(LauncherError):
    def __init__(self, message: str, returncode: Optional[int] = None):
        super().__init__(message)
        self.returncode = returncode

class ConfigError(LauncherError):
    pass

class LogicError(Exception):
    """Raised when an internal invariant is broken. Never caught by the CLI."""
