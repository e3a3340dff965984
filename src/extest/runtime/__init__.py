#
# src/extest/runtime/__init__.py
#
"""
Run orchestration: aggregation, watch-mode scheduling, and the top-level driver.
"""

from .aggregator import run_prepared
from .driver import run_cli, select_tests
from .scheduler import DEBOUNCE_DELAY, WatchScheduler
from .watcher import FileWatcher, WatchEvent, WatchPlan

__all__ = [
    "DEBOUNCE_DELAY",
    "FileWatcher",
    "WatchEvent",
    "WatchPlan",
    "WatchScheduler",
    "run_cli",
    "run_prepared",
    "select_tests",
]

# 🔼⚙️
