# src/extest/exceptions.py

"""
Custom exception hierarchy for extest.

Errors flagged ``user_facing`` are expected in normal use (bad config, missing
module, unknown label) and are reported as a single line without a traceback.
"""


class ExtestError(Exception):
    """Base class for all extest errors."""

    user_facing: bool = False

    def __init__(self, message: str, details: Exception | None = None):
        self.details = details
        super().__init__(message)
        if details and hasattr(self, "add_note"):
            self.add_note(f"Original error: {type(details).__name__}: {details}")


class ConfigurationError(ExtestError):
    """Raised when the configuration cannot be found, loaded, or selected from."""

    user_facing = True


class ModuleResolutionError(ExtestError):
    """Raised when a preload module cannot be resolved."""

    user_facing = True

    def __init__(self, request: str, basedir: str, bare: bool, details: Exception | None = None):
        self.request = request
        self.basedir = basedir
        self.bare = bare
        message = f"Could not resolve module \"{request}\" in {basedir}"
        if bare:
            message += " (you may need to install the dependency, e.g. `npm install --save-dev " + request + "`)"
        super().__init__(message, details)


class PlatformNotFoundError(ExtestError):
    """Raised when no platform claims a test configuration."""

    user_facing = True


class ExtensionInstallError(ExtestError):
    """Raised when the editor CLI fails to install extensions."""

    user_facing = True

    def __init__(self, exit_code: int, output: str):
        self.exit_code = exit_code
        self.output = output
        super().__init__(f"Failed to install extensions (exit code {exit_code}):\n{output}")


class LauncherError(ExtestError):
    """Raised when downloading or launching the editor fails for reasons other than failing tests."""


class LauncherUnavailableError(LauncherError):
    """Raised when the launcher's optional runtime dependencies are not installed."""

    user_facing = True


class WatchSetupError(ExtestError):
    """Raised when the filesystem watcher cannot be started."""


# 🔼⚙️
