#
# src/extest/platforms/protocols.py
#
"""
Defines protocols and data structures shared by execution platforms.
"""

from enum import Enum
from typing import Any, Protocol, runtime_checkable

from attrs import define

from extest.args import RunArgs
from extest.config import ResolvedConfiguration, TestConfiguration


@define(frozen=True, slots=True)
class RunContext:
    """Per-pass data that is not part of the configuration."""

    coverage_dir: str | None = None


class RunOutcome(Enum):
    """How a launched test process ended. Launcher failures are raised, never returned."""

    PASSED = 0
    TESTS_FAILED = 1

    @property
    def exit_code(self) -> int:
        return self.value


@runtime_checkable
class PreparedRun(Protocol):
    """
    A fully assembled, immediately executable unit derived from one test
    configuration and one platform.
    """

    async def execute(self, context: RunContext) -> int:
        """
        Runs the tests.

        Returns:
            0 when every test passed, 1 when tests ran and at least one failed.
        """
        ...

    def describe(self) -> dict[str, Any]:
        """Returns a JSON-serializable snapshot of what ``execute`` would run."""
        ...


@runtime_checkable
class Platform(Protocol):
    """An execution target able to claim and prepare test configurations."""

    name: str

    async def prepare(
        self,
        args: RunArgs,
        config: ResolvedConfiguration,
        test: TestConfiguration,
    ) -> PreparedRun | None:
        """Returns a PreparedRun, or ``None`` when this platform does not own ``test``."""
        ...

# 🔼⚙️
