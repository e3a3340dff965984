#
# config/__init__.py
#
"""
Configuration handling sub-package for extest.

Exports the loading functions and core configuration models.
"""

from .loader import CONFIG_BASENAME, CONFIG_EXTENSIONS, find_default_config, load_config, structure_config
from .models import (
    DESKTOP_PLATFORM,
    CoverageConfig,
    DownloadConfig,
    InstallationConfig,
    ResolvedConfiguration,
    TestConfiguration,
    ensure_list,
)

__all__ = [
    "CONFIG_BASENAME",
    "CONFIG_EXTENSIONS",
    "DESKTOP_PLATFORM",
    "CoverageConfig",
    "DownloadConfig",
    "InstallationConfig",
    "ResolvedConfiguration",
    "TestConfiguration",
    "ensure_list",
    "find_default_config",
    "load_config",
    "structure_config",
]

# 🔼⚙️
