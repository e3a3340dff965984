# src/extest/launcher/process.py

"""
Spawns the editor for test runs and its CLI for extension installation.
"""

import asyncio
import contextlib
from collections.abc import Mapping, Sequence
from pathlib import Path

import structlog
from attrs import define

from extest.exceptions import LauncherError
from extest.telemetry import StructLogger

from .download import cli_path

log: StructLogger = structlog.get_logger("launcher.process")

# Flags that keep a freshly launched editor from prompting or updating itself mid-run.
DEFAULT_LAUNCH_FLAGS = (
    "--no-sandbox",
    "--disable-gpu-sandbox",
    "--disable-updates",
    "--skip-welcome",
    "--skip-release-notes",
    "--disable-workspace-trust",
)


@define(frozen=True, slots=True)
class LaunchResult:
    exit_code: int


@define(frozen=True, slots=True)
class CommandResult:
    exit_code: int
    output: str


def isolation_args(cache_dir: Path, reuse_machine_install: bool) -> list[str]:
    """Per-project data/extension dirs, so test runs never touch the user's own profile."""
    if reuse_machine_install:
        return []
    return [
        f"--extensions-dir={cache_dir / 'extensions'}",
        f"--user-data-dir={cache_dir / 'user-data'}",
    ]


def resolve_cli_args(executable: Path, cache_dir: Path, reuse_machine_install: bool = False) -> list[str]:
    cli = cli_path(executable)
    if not cli.exists():
        raise LauncherError(f"Editor command-line tool not found at {cli}")
    return [str(cli), *isolation_args(cache_dir, reuse_machine_install)]


async def _terminate(process: asyncio.subprocess.Process) -> None:
    """Stops a child whose waiter was cancelled and reaps it."""
    if process.returncode is None:
        with contextlib.suppress(ProcessLookupError):
            process.terminate()
        await process.wait()
    log.debug("Child process terminated after cancellation", pid=process.pid, exit_code=process.returncode)


async def run_command(args: Sequence[str], env: Mapping[str, str] | None = None) -> CommandResult:
    """Runs a command to completion, capturing combined stdout and stderr."""
    cmd_log = log.bind(command=" ".join(args))
    cmd_log.debug("Running command")
    try:
        process = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
            env=dict(env) if env is not None else None,
        )
    except OSError as e:
        raise LauncherError(f"Failed to start '{args[0]}': {e}", details=e) from e
    try:
        stdout_bytes, _ = await process.communicate()
    except asyncio.CancelledError:
        await _terminate(process)
        raise
    exit_code = process.returncode if process.returncode is not None else -1
    cmd_log.debug("Command finished", exit_code=exit_code)
    return CommandResult(exit_code=exit_code, output=stdout_bytes.decode("utf-8", errors="replace"))


async def launch_tests(
    executable: Path,
    extension_development_path: Sequence[str],
    extension_tests_path: str,
    launch_args: Sequence[str],
    env: Mapping[str, str],
) -> LaunchResult:
    """
    Launches the editor in extension-test mode and waits for it to exit.

    Output is inherited so runner reporters stream straight to the terminal.
    A process killed by a signal is a launcher failure, not a test failure.
    """
    args = [
        *launch_args,
        *DEFAULT_LAUNCH_FLAGS,
        f"--extensionTestsPath={extension_tests_path}",
        *(f"--extensionDevelopmentPath={p}" for p in extension_development_path),
    ]
    launch_log = log.bind(executable=str(executable))
    launch_log.info("Launching editor for tests", emoji_key="run")
    launch_log.debug("Launch arguments", args=args)
    try:
        process = await asyncio.create_subprocess_exec(str(executable), *args, env=dict(env))
    except OSError as e:
        raise LauncherError(f"Failed to launch {executable}: {e}", details=e) from e

    try:
        exit_code = await process.wait()
    except asyncio.CancelledError:
        await _terminate(process)
        raise
    if exit_code < 0:
        raise LauncherError(f"Editor process was terminated by signal {-exit_code}")
    launch_log.info("Editor exited", exit_code=exit_code)
    return LaunchResult(exit_code=exit_code)
