# src/extest/args.py

"""
Command-line arguments, parsed once and passed explicitly to every component.
"""

from pathlib import Path
from typing import Any

from attrs import define, field


@define(frozen=True, slots=True)
class RunArgs:
    """Per-invocation options that are not part of the configuration file."""

    config: Path | None = field(default=None)
    label: tuple[str, ...] = field(factory=tuple, converter=tuple)

    # Watch mode
    watch: bool = field(default=False)
    watch_files: tuple[str, ...] = field(factory=tuple, converter=tuple)
    watch_ignore: tuple[str, ...] = field(factory=tuple, converter=tuple)

    # Execution
    bail: bool = field(default=False)
    coverage: bool = field(default=False)
    coverage_output: str | None = field(default=None)
    run: tuple[str, ...] = field(factory=tuple, converter=tuple)
    file: tuple[str, ...] = field(factory=tuple, converter=tuple)
    ignore: tuple[str, ...] = field(factory=tuple, converter=tuple)
    list_configuration: bool = field(default=False)

    # Editor / extensions
    install_extensions: tuple[str, ...] = field(factory=tuple, converter=tuple)
    skip_extension_dependencies: bool = field(default=False)
    code_version: str | None = field(default=None)

    # Runner overrides, merged over each test's own runner options
    grep: str | None = field(default=None)
    fgrep: str | None = field(default=None)
    invert: bool = field(default=False)
    timeout: int | None = field(default=None)
    reporter: str | None = field(default=None)
    retries: int | None = field(default=None)
    forbid_only: bool = field(default=False)
    fail_zero: bool = field(default=False)

    # Working directory that CLI-relative paths (--run, --file) are resolved against
    cwd: Path = field(factory=Path.cwd)

    def runner_overrides(self) -> dict[str, Any]:
        """Returns only the runner options that were set on the command line, in runner key names."""
        overrides: dict[str, Any] = {
            "grep": self.grep,
            "fgrep": self.fgrep,
            "timeout": self.timeout,
            "reporter": self.reporter,
            "retries": self.retries,
        }
        flags = {"invert": self.invert, "forbidOnly": self.forbid_only, "failZero": self.fail_zero}
        result = {key: value for key, value in overrides.items() if value is not None}
        result.update({key: True for key, value in flags.items() if value})
        return result
