#
# src/extest/launcher/__init__.py
#
"""
Editor acquisition and process launching.

This sub-package needs ``httpx`` and is only imported when a prepared run
executes, so that preparing and listing runs work without it.
"""

from .download import BuildSpec, cli_path, detect_platform_id, download_build, executable_path, parse_version
from .process import (
    CommandResult,
    LaunchResult,
    isolation_args,
    launch_tests,
    resolve_cli_args,
    run_command,
)

__all__ = [
    "BuildSpec",
    "CommandResult",
    "LaunchResult",
    "cli_path",
    "detect_platform_id",
    "download_build",
    "executable_path",
    "isolation_args",
    "launch_tests",
    "parse_version",
    "resolve_cli_args",
    "run_command",
]

# 🔼⚙️
