#
# src/extest/platforms/__init__.py
#
"""
Execution platforms and the resolver that picks one per test configuration.
"""

from collections.abc import Sequence

import structlog

from extest.args import RunArgs
from extest.config import ResolvedConfiguration, TestConfiguration
from extest.exceptions import PlatformNotFoundError
from extest.telemetry import StructLogger

from .desktop import DesktopPlatform, DesktopPreparedRun
from .protocols import Platform, PreparedRun, RunContext, RunOutcome

log: StructLogger = structlog.get_logger("platforms")

# Checked in order; the first platform that returns a PreparedRun owns the test.
PLATFORMS: tuple[Platform, ...] = (DesktopPlatform(),)


def _test_name(config: ResolvedConfiguration, test: TestConfiguration) -> str:
    if test.label:
        return f'"{test.label}"'
    for i, candidate in enumerate(config.tests):
        if candidate is test:
            return f"#{i}"
    return "<unnamed>"


async def prepare(
    args: RunArgs,
    config: ResolvedConfiguration,
    test: TestConfiguration,
    platforms: Sequence[Platform] = PLATFORMS,
) -> PreparedRun:
    """Resolves ``test`` against the first platform that claims it."""
    name = _test_name(config, test)
    for platform in platforms:
        prepared = await platform.prepare(args, config, test)
        if prepared is not None:
            log.debug("Platform claimed test", platform=platform.name, test=name)
            return prepared
    raise PlatformNotFoundError(
        f"Could not find a platform for test {name} (platform: {test.platform!r})"
    )


async def prepare_all(
    args: RunArgs,
    config: ResolvedConfiguration,
    indices: Sequence[int],
    platforms: Sequence[Platform] = PLATFORMS,
) -> list[PreparedRun]:
    """Prepares every selected test before any of them runs."""
    return [await prepare(args, config, config.tests[i], platforms) for i in indices]


__all__ = [
    "PLATFORMS",
    "DesktopPlatform",
    "DesktopPreparedRun",
    "Platform",
    "PreparedRun",
    "RunContext",
    "RunOutcome",
    "prepare",
    "prepare_all",
]

# 🔼⚙️
