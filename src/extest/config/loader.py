#
# config/loader.py
#
"""
Locates and loads extest configuration files into a ResolvedConfiguration.

Supported formats are JSON, TOML, and Python modules. A Python module exposes
``config`` (or ``default``); the value may be a callable and its result may be
awaitable.
"""

import importlib.util
import inspect
import json
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import structlog

from extest.exceptions import ConfigurationError
from extest.telemetry import StructLogger

from .models import (
    CoverageConfig,
    DownloadConfig,
    InstallationConfig,
    ResolvedConfiguration,
    TestConfiguration,
)

log: StructLogger = structlog.get_logger("config.loader")

CONFIG_BASENAME = ".vscode-test"
CONFIG_EXTENSIONS = (".json", ".toml", ".py")

# camelCase keys as written in .vscode-test files, mapped onto model field names.
_TEST_KEY_ALIASES = {
    "extensionDevelopmentPath": "extension_development_path",
    "workspaceFolder": "workspace_folder",
    "launchArgs": "launch_args",
    "installExtensions": "install_extensions",
    "skipExtensionDependencies": "skip_extension_dependencies",
    "useInstallation": "use_installation",
    "srcDir": "src_dir",
}
_INSTALLATION_KEY_ALIASES = {"fromPath": "from_path", "fromMachine": "from_machine"}


def find_default_config(start: Path) -> Path:
    """Searches ``start`` and each ancestor for ``.vscode-test.<ext>``; the first match wins."""
    current = start.resolve()
    for directory in (current, *current.parents):
        for ext in CONFIG_EXTENSIONS:
            candidate = directory / f"{CONFIG_BASENAME}{ext}"
            if candidate.is_file():
                log.debug("Found default configuration file", path=str(candidate))
                return candidate
    raise ConfigurationError(
        f"Could not find a {CONFIG_BASENAME} file in {current} or any parent directory. "
        "Pass the path to a configuration file with --config."
    )


def _rename_keys(data: Mapping[str, Any], aliases: Mapping[str, str]) -> dict[str, Any]:
    return {aliases.get(key, key): value for key, value in data.items()}


def _structure_test(raw: Any, index: int) -> TestConfiguration:
    if not isinstance(raw, Mapping):
        raise ConfigurationError(f"Test configuration #{index} must be an object, got {type(raw).__name__}")

    data = _rename_keys(raw, _TEST_KEY_ALIASES)
    if "files" not in data:
        raise ConfigurationError(f"Test configuration #{index} is missing the required 'files' key")

    installation = data.pop("use_installation", None)
    if installation is not None:
        if not isinstance(installation, Mapping):
            raise ConfigurationError(f"Test configuration #{index}: 'useInstallation' must be an object")
        data["use_installation"] = InstallationConfig(**_rename_keys(installation, _INSTALLATION_KEY_ALIASES))

    download = data.pop("download", None)
    if download is not None:
        if not isinstance(download, Mapping):
            raise ConfigurationError(f"Test configuration #{index}: 'download' must be an object")
        data["download"] = DownloadConfig(timeout=download.get("timeout"))

    data.pop("$schema", None)
    try:
        return TestConfiguration(**data)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid test configuration #{index}: {e}", details=e) from e


def _structure_coverage(raw: Any) -> CoverageConfig | None:
    if raw is None:
        return None
    if not isinstance(raw, Mapping):
        raise ConfigurationError("'coverage' must be an object")
    try:
        return CoverageConfig(
            include=raw.get("include", ()),
            exclude=raw.get("exclude", ()),
            output=raw.get("output", "coverage"),
        )
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid coverage configuration: {e}", details=e) from e


def structure_config(raw: Any, path: Path) -> ResolvedConfiguration:
    """Builds a ResolvedConfiguration from a loaded value (single test, list, or ``{tests: [...]}``)."""
    coverage_raw = None
    if isinstance(raw, Mapping) and "tests" in raw:
        tests_raw = raw["tests"]
        coverage_raw = raw.get("coverage")
    elif isinstance(raw, list | tuple):
        tests_raw = raw
    else:
        tests_raw = [raw]

    if not isinstance(tests_raw, list | tuple):
        raise ConfigurationError(f"'tests' in {path} must be a list")

    tests = [_structure_test(item, i) for i, item in enumerate(tests_raw)]
    return ResolvedConfiguration(path=path, tests=tests, coverage=_structure_coverage(coverage_raw))


def _load_python_module(path: Path) -> Any:
    spec = importlib.util.spec_from_file_location("_extest_user_config", path)
    if spec is None or spec.loader is None:
        raise ConfigurationError(f"Cannot import configuration module {path}")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    for attr in ("config", "default"):
        if hasattr(module, attr):
            return getattr(module, attr)
    raise ConfigurationError(f"Configuration module {path} must define 'config' or 'default'")


async def load_config(config_path: Path) -> ResolvedConfiguration:
    """Loads and validates the configuration at ``config_path``."""
    path = config_path.expanduser().resolve()
    load_log = log.bind(path=str(path))
    if not path.is_file():
        raise ConfigurationError(f"Configuration file not found: {path}")

    suffix = path.suffix.lower()
    load_log.debug("Loading configuration", format=suffix, emoji_key="load")
    try:
        if suffix == ".json":
            raw = json.loads(path.read_text(encoding="utf-8"))
        elif suffix == ".toml":
            raw = tomllib.loads(path.read_text(encoding="utf-8"))
        elif suffix == ".py":
            raw = _load_python_module(path)
        else:
            raise ConfigurationError(
                f"Unknown configuration file extension '{suffix}' for {path}. "
                f"Supported: {', '.join(CONFIG_EXTENSIONS)}"
            )
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in {path}: {e}", details=e) from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid TOML in {path}: {e}", details=e) from e

    if callable(raw):
        raw = raw()
    if inspect.isawaitable(raw):
        raw = await raw

    config = structure_config(raw, path)
    load_log.info("Configuration loaded", tests=len(config.tests), coverage=config.coverage is not None)
    return config


# 🔼⚙️
