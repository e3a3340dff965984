#
# src/extest/resolution/__init__.py
#
"""
Path, glob, and module resolution helpers used while preparing runs.
"""

from .files import expand_pattern, gather_files, is_ignored, matches_glob
from .modules import resolve_module

__all__ = ["expand_pattern", "gather_files", "is_ignored", "matches_glob", "resolve_module"]

# 🔼⚙️
