#
# tests/unit/test_watcher.py
#
"""
Tests for watch planning, event filtering, and the watchdog bridge.
"""

import asyncio
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from watchdog.events import (
    DirModifiedEvent,
    FileClosedEvent,
    FileCreatedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)

from extest.runtime.watcher import READY, FileWatcher, WatchEvent, WatchPlan, _QueueingHandler


class TestWatchPlan:
    def test_defaults_to_base_and_ignores_tool_dirs(self, tmp_path: Path) -> None:
        plan = WatchPlan.build(tmp_path, [], [])

        assert plan.roots == (tmp_path,)
        assert plan.accepts(str(tmp_path / "src" / "a.js"))
        assert not plan.accepts(str(tmp_path / "node_modules" / "x" / "index.js"))
        assert not plan.accepts(str(tmp_path / ".vscode-test" / "user-data" / "log"))
        assert not plan.accepts(str(tmp_path / ".git" / "HEAD"))

    def test_glob_entries_filter_events(self, tmp_path: Path) -> None:
        plan = WatchPlan.build(tmp_path, ["out/**/*.js"], ["**/*.map.js"])

        assert plan.roots == (tmp_path,)
        assert plan.accepts(str(tmp_path / "out" / "test" / "a.js"))
        assert not plan.accepts(str(tmp_path / "src" / "a.ts"))
        assert not plan.accepts(str(tmp_path / "out" / "a.map.js"))

    def test_double_star_matches_zero_directories(self, tmp_path: Path) -> None:
        plan = WatchPlan.build(tmp_path, ["src/**/*.ts"], [])

        assert plan.accepts(str(tmp_path / "src" / "a.ts"))
        assert plan.accepts(str(tmp_path / "src" / "x" / "y" / "a.ts"))
        assert not plan.accepts(str(tmp_path / "a.ts"))

    def test_plain_directory_entry_is_a_root(self, tmp_path: Path) -> None:
        (tmp_path / "src").mkdir()
        plan = WatchPlan.build(tmp_path, ["src"], [])

        assert plan.roots == ((tmp_path / "src").resolve(),)
        assert plan.accepts(str((tmp_path / "src" / "deep" / "a.js").resolve()))
        assert not plan.accepts(str((tmp_path / "other.js").resolve()))


class TestQueueingHandler:
    @pytest.fixture
    def handler(self, tmp_path: Path):
        loop = MagicMock()
        queue = MagicMock()
        return _QueueingHandler(WatchPlan.build(tmp_path, [], []), queue, loop), loop, queue

    def test_forwards_accepted_events_to_loop(self, handler, tmp_path: Path) -> None:
        h, loop, queue = handler

        h.on_any_event(FileModifiedEvent(str(tmp_path / "a.js")))

        loop.call_soon_threadsafe.assert_called_once()
        put, event = loop.call_soon_threadsafe.call_args.args
        assert put is queue.put_nowait
        assert event == WatchEvent(kind="modified", path=tmp_path / "a.js")
        assert event.is_content_change

    def test_created_is_structural(self, handler, tmp_path: Path) -> None:
        h, loop, _ = handler

        h.on_any_event(FileCreatedEvent(str(tmp_path / "new.js")))

        event = loop.call_soon_threadsafe.call_args.args[1]
        assert not event.is_content_change

    def test_ignored_and_access_events_are_dropped(self, handler, tmp_path: Path) -> None:
        h, loop, _ = handler

        h.on_any_event(FileModifiedEvent(str(tmp_path / "node_modules" / "x.js")))
        h.on_any_event(FileClosedEvent(str(tmp_path / "a.js")))

        loop.call_soon_threadsafe.assert_not_called()

    def test_directory_modified_is_dropped(self, handler, tmp_path: Path) -> None:
        h, loop, _ = handler

        h.on_any_event(DirModifiedEvent(str(tmp_path)))
        h.on_any_event(DirModifiedEvent(str(tmp_path / "src")))

        loop.call_soon_threadsafe.assert_not_called()

    def test_move_into_watched_area_is_accepted(self, handler, tmp_path: Path) -> None:
        h, loop, _ = handler

        h.on_any_event(FileMovedEvent(str(tmp_path / "node_modules" / "tmp.js"), str(tmp_path / "src" / "a.js")))

        event = loop.call_soon_threadsafe.call_args.args[1]
        assert event.kind == "moved"
        assert event.path == tmp_path / "src" / "a.js"


@pytest.mark.slow
@pytest.mark.asyncio
async def test_file_watcher_emits_ready_then_changes(tmp_path: Path) -> None:
    queue: asyncio.Queue[WatchEvent] = asyncio.Queue()
    watcher = FileWatcher(WatchPlan.build(tmp_path, [], []), queue)
    watcher.start()
    try:
        assert watcher.is_running
        first = await asyncio.wait_for(queue.get(), 2)
        assert first.kind == READY

        (tmp_path / "a.js").write_text("// a")
        event = await asyncio.wait_for(queue.get(), 5)
        assert event.path is not None
    finally:
        watcher.stop()
    assert not watcher.is_running
