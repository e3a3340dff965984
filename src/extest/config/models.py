#
# config/models.py
#
"""
Attrs-based data models for the extest configuration structure.
"""

from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any, TypeAlias

from attrs import define, field

StrOrList: TypeAlias = str | Sequence[str]

DESKTOP_PLATFORM = "desktop"


def ensure_list(value: StrOrList | None) -> list[str]:
    """Normalizes a single string, a sequence, or ``None`` into a list."""
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return list(value)


def _validate_timeout(inst: Any, attr: Any, value: float | None) -> None:
    if value is not None and value <= 0:
        raise ValueError(f"Field '{attr.name}' must be a positive number of seconds, got {value}")


@define(frozen=True, slots=True)
class InstallationConfig:
    """Use an existing editor installation instead of downloading one."""
    from_path: str | None = field(default=None)
    from_machine: bool = field(default=False)


@define(frozen=True, slots=True)
class DownloadConfig:
    """Options passed through to the binary download."""
    timeout: float | None = field(default=None, validator=_validate_timeout)


@define(frozen=True, slots=True)
class TestConfiguration:
    """One named unit of test execution: files, platform, and runner options."""

    __test__ = False  # not a pytest test class

    files: StrOrList = field()
    label: str | None = field(default=None)
    platform: str | None = field(default=None)
    version: str | None = field(default=None)
    extension_development_path: StrOrList | None = field(default=None)
    workspace_folder: str | None = field(default=None)
    launch_args: tuple[str, ...] = field(factory=tuple, converter=tuple)
    env: Mapping[str, str | None] = field(factory=dict)
    mocha: Mapping[str, Any] = field(factory=dict)
    install_extensions: tuple[str, ...] = field(factory=tuple, converter=tuple)
    skip_extension_dependencies: bool = field(default=False)
    use_installation: InstallationConfig | None = field(default=None)
    download: DownloadConfig = field(factory=DownloadConfig)
    src_dir: str | None = field(default=None)

    @property
    def preload(self) -> list[str]:
        return ensure_list(self.mocha.get("preload"))


@define(frozen=True, slots=True)
class CoverageConfig:
    """Coverage collection settings shared by every test configuration."""
    include: tuple[str, ...] = field(factory=tuple, converter=tuple)
    exclude: tuple[str, ...] = field(factory=tuple, converter=tuple)
    output: str = field(default="coverage")


@define(frozen=True, slots=True)
class ResolvedConfiguration:
    """Root configuration object produced by loading a config file."""
    path: Path = field()
    tests: tuple[TestConfiguration, ...] = field(converter=tuple)
    coverage: CoverageConfig | None = field(default=None)

    @property
    def dir(self) -> Path:
        """Directory the config file lives in; relative paths are authored against it."""
        return self.path.parent

    def resolve_path(self, value: str | Path) -> Path:
        path = Path(value).expanduser()
        if path.is_absolute():
            return path
        return (self.dir / path).resolve()


# 🔼⚙️
