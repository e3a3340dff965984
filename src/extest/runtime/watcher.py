# src/extest/runtime/watcher.py

"""
Bridges watchdog filesystem notifications onto the asyncio event loop.
"""

import asyncio
import glob
import os
from collections.abc import Sequence
from pathlib import Path

import structlog
from attrs import define, field
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from extest.exceptions import WatchSetupError
from extest.resolution import is_ignored
from extest.telemetry import StructLogger

log: StructLogger = structlog.get_logger("runtime.watcher")

READY = "ready"
MODIFIED = "modified"
# Access notifications carry no change and never trigger a run.
_SKIPPED_KINDS = frozenset({"opened", "closed", "closed_no_write"})

DEFAULT_IGNORE = ("**/.vscode-test/**", "**/node_modules/**", "**/.git/**")


@define(frozen=True, slots=True)
class WatchEvent:
    """A filesystem notification (or the one-time ``ready`` signal) for the scheduler."""

    kind: str
    path: Path | None = field(default=None)
    is_directory: bool = field(default=False)

    @property
    def is_content_change(self) -> bool:
        """True for in-place edits; adds, removes, and renames are structural."""
        return self.kind == MODIFIED


@define(frozen=True, slots=True)
class WatchPlan:
    """Directories to observe plus the filters applied to their events."""

    base: Path
    roots: tuple[Path, ...] = field(converter=tuple)
    include: tuple[str, ...] = field(converter=tuple)
    ignore: tuple[str, ...] = field(converter=tuple)

    @classmethod
    def build(cls, base: Path, watch_files: Sequence[str], watch_ignore: Sequence[str]) -> "WatchPlan":
        """
        Plain paths are watched directly (directories recursively); glob entries
        watch ``base`` and filter events by the pattern. No entries means ``base``.
        """
        roots: list[Path] = []
        include: list[str] = []
        for entry in watch_files:
            if glob.has_magic(entry):
                roots.append(base)
                include.append(entry)
                continue
            path = Path(entry).expanduser()
            path = path if path.is_absolute() else (base / path).resolve()
            if path.is_dir():
                roots.append(path)
                include.append(f"{path}/**")
            else:
                roots.append(path.parent)
                include.append(str(path))
        if not roots:
            roots.append(base)
        unique_roots = list(dict.fromkeys(roots))
        return cls(base=base, roots=unique_roots, include=include, ignore=[*DEFAULT_IGNORE, *watch_ignore])

    def accepts(self, path: str) -> bool:
        if is_ignored(path, self.base, self.ignore):
            return False
        return not self.include or is_ignored(path, self.base, self.include)


class _QueueingHandler(FileSystemEventHandler):
    """Runs on the observer thread; hands accepted events to the loop thread-safely."""

    def __init__(self, plan: WatchPlan, event_queue: asyncio.Queue[WatchEvent], loop: asyncio.AbstractEventLoop):
        self._plan = plan
        self._queue = event_queue
        self._loop = loop

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type in _SKIPPED_KINDS:
            return
        # A directory "modified" only reflects a child change, which arrives as its own event.
        if event.is_directory and event.event_type == MODIFIED:
            return
        paths = [os.fsdecode(event.src_path)]
        dest = getattr(event, "dest_path", "")
        if dest:
            paths.append(os.fsdecode(dest))
        accepted = next((p for p in paths if self._plan.accepts(p)), None)
        if accepted is None:
            return
        watch_event = WatchEvent(kind=event.event_type, path=Path(accepted), is_directory=event.is_directory)
        self._loop.call_soon_threadsafe(self._queue.put_nowait, watch_event)


class FileWatcher:
    """Owns the watchdog observer for watch mode."""

    def __init__(self, plan: WatchPlan, event_queue: asyncio.Queue[WatchEvent]):
        self.plan = plan
        self.event_queue = event_queue
        self._observer: Observer | None = None

    @property
    def is_running(self) -> bool:
        return self._observer is not None and self._observer.is_alive()

    def start(self) -> None:
        """Schedules every root, starts the observer, then queues the ``ready`` event."""
        loop = asyncio.get_running_loop()
        handler = _QueueingHandler(self.plan, self.event_queue, loop)
        observer = Observer()
        try:
            for root in self.plan.roots:
                observer.schedule(handler, str(root), recursive=True)
                log.debug("Watching directory", path=str(root))
            observer.start()
        except OSError as e:
            raise WatchSetupError(f"Failed to start the file watcher: {e}", details=e) from e
        self._observer = observer
        log.info("File watcher started", roots=[str(r) for r in self.plan.roots], emoji_key="watch")
        self.event_queue.put_nowait(WatchEvent(kind=READY))

    def stop(self) -> None:
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join()
        self._observer = None
        log.debug("File watcher stopped.")
