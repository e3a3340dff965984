#
# src/extest/telemetry/__init__.py
#
"""
Telemetry sub-package for extest: structured logging setup and logger types.
"""

from .logger import StructLogger, setup_logging

__all__ = ["StructLogger", "setup_logging"]

# 🔼⚙️
