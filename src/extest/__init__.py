#
# src/extest/__init__.py
#
"""
extest: prepares, sequences, and watches editor-extension test runs.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("extest")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"

# 🔼⚙️
