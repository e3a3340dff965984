# src/extest/state.py
#
"""
Defines the mutable state of the watch-mode scheduler.
"""

import asyncio
from enum import Enum, auto

import structlog
from attrs import field, mutable

from extest.platforms import PreparedRun

log: structlog.stdlib.BoundLogger = structlog.get_logger("state")


class WatchStatus(Enum):
    """States of the watch-mode scheduler."""

    IDLE = auto()  # Nothing pending, nothing running.
    DEBOUNCING = auto()  # A timer is pending; further changes restart it.
    RUNNING = auto()  # A prepare+run pass is in flight.
    RUNNING_RERUN_PENDING = auto()  # In flight, and changes arrived meanwhile.

    @property
    def is_running(self) -> bool:
        return self in (WatchStatus.RUNNING, WatchStatus.RUNNING_RERUN_PENDING)


@mutable(slots=True)
class WatchState:
    """
    Holds the scheduler's state between events.

    Every field is read and written only from the event loop thread, and never
    across an ``await``, so no locking is needed.
    """

    status: WatchStatus = field(default=WatchStatus.IDLE)
    prepared_cache: list[PreparedRun] | None = field(default=None)
    timer_handle: asyncio.TimerHandle | None = field(default=None)
    # Bumped on every invalidation so a pass can tell whether what it prepared is already stale.
    cache_generation: int = field(default=0)

    def update_status(self, new_status: WatchStatus) -> None:
        old_status = self.status
        if old_status == new_status:
            return
        self.status = new_status
        log.debug("Watch status changed", old_status=old_status.name, new_status=new_status.name)

    def invalidate_cache(self) -> None:
        if self.prepared_cache is not None:
            log.debug("Invalidating prepared runs")
        self.prepared_cache = None
        self.cache_generation += 1

    def set_timer(self, handle: asyncio.TimerHandle) -> None:
        """Stores the debounce timer handle, cancelling any previous one."""
        self.cancel_timer()
        self.timer_handle = handle

    def cancel_timer(self) -> None:
        if self.timer_handle:
            self.timer_handle.cancel()
            self.timer_handle = None


# 🔼⚙️
