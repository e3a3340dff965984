# src/extest/runtime/scheduler.py
"""
Debounced, coalescing re-run loop driven by filesystem events.
"""
import asyncio
from collections.abc import Awaitable, Callable, Sequence

import structlog
from rich.console import Console

from extest.exceptions import ExtestError
from extest.platforms import PreparedRun
from extest.runtime.watcher import READY, WatchEvent
from extest.state import WatchState, WatchStatus
from extest.telemetry import StructLogger

log: StructLogger = structlog.get_logger("runtime.scheduler")
# Debounce delay to group bursts of filesystem events (e.g. an editor's multi-write save) into one pass.
DEBOUNCE_DELAY = 0.3  # 300 milliseconds

PrepareFn = Callable[[], Awaitable[list[PreparedRun]]]
RunFn = Callable[[Sequence[PreparedRun]], Awaitable[int]]


class WatchScheduler:
    """
    Consumes watch events and runs at most one prepare+run pass at a time.

    State machine (see WatchStatus):
      IDLE --change--> DEBOUNCING --change--> DEBOUNCING (timer restarted)
      DEBOUNCING --timer--> RUNNING --change--> RUNNING_RERUN_PENDING
      RUNNING --done--> IDLE;  RUNNING_RERUN_PENDING --done--> DEBOUNCING (zero delay)
    Any event other than a content modification also drops the prepared-run cache.
    """

    def __init__(
        self,
        event_queue: asyncio.Queue[WatchEvent],
        prepare: PrepareFn,
        run: RunFn,
        debounce_delay: float = DEBOUNCE_DELAY,
        console: Console | None = None,
    ):
        self.event_queue = event_queue
        self._prepare = prepare
        self._run = run
        self.debounce_delay = debounce_delay
        self.console = console
        self.state = WatchState()
        self.pass_count = 0
        self.last_exit_code: int | None = None
        self._pass_task: asyncio.Task | None = None
        log.debug("WatchScheduler initialized.", debounce_delay=debounce_delay)

    async def run(self) -> None:
        """Main event consumption loop. Never returns on its own; cancel it to stop."""
        log.info("Watch scheduler is running.", emoji_key="watch")
        try:
            while True:
                event = await self.event_queue.get()
                self.handle_event(event)
        finally:
            await self.stop()

    def handle_event(self, event: WatchEvent) -> None:
        if event.kind != READY and not event.is_content_change:
            self.state.invalidate_cache()
        log.debug("Watch event", kind=event.kind, path=str(event.path) if event.path else None)
        self._request_run()

    def _request_run(self) -> None:
        if self.state.status.is_running:
            self.state.update_status(WatchStatus.RUNNING_RERUN_PENDING)
            return
        self._start_timer(self.debounce_delay)

    def _start_timer(self, delay: float) -> None:
        loop = asyncio.get_running_loop()
        self.state.set_timer(loop.call_later(delay, self._on_timer))
        self.state.update_status(WatchStatus.DEBOUNCING)

    def _on_timer(self) -> None:
        self.state.timer_handle = None
        self.state.update_status(WatchStatus.RUNNING)
        self._pass_task = asyncio.create_task(self._run_pass())

    def _finish_pass(self) -> None:
        if self.state.status == WatchStatus.RUNNING_RERUN_PENDING:
            log.debug("Changes arrived during the pass, scheduling a follow-up")
            self._start_timer(0)
        else:
            self.state.update_status(WatchStatus.IDLE)

    async def _pipeline(self) -> int:
        prepared = self.state.prepared_cache
        if prepared is None:
            generation = self.state.cache_generation
            prepared = await self._prepare()
            # Only cache if nothing structural changed while preparing.
            if generation == self.state.cache_generation:
                self.state.prepared_cache = prepared
        return await self._run(prepared)

    async def _run_pass(self) -> None:
        self.pass_count += 1
        pass_log = log.bind(pass_number=self.pass_count)
        pass_log.info("Starting test pass", emoji_key="run")
        try:
            try:
                exit_code = await self._pipeline()
            finally:
                self._finish_pass()
        except ExtestError as e:
            self.last_exit_code = 1
            if e.user_facing:
                pass_log.error("Test pass failed", error=str(e))
                self._console_message(f"Error: {e}", style="bold red")
            else:
                pass_log.exception("Test pass failed with an unexpected error")
        except Exception:
            self.last_exit_code = 1
            pass_log.exception("Test pass failed with an unexpected error")
        else:
            self.last_exit_code = exit_code
            pass_log.info("Test pass finished", exit_code=exit_code)
            if exit_code == 0:
                self._console_message("Tests passed. Waiting for changes...", style="bold green")
            else:
                self._console_message(f"Tests failed (exit code {exit_code}). Waiting for changes...", style="bold red")

    def _console_message(self, message: str, style: str) -> None:
        if self.console:
            self.console.print(message, style=style, markup=False)

    async def stop(self) -> None:
        """Cancels the pending timer and waits for an in-flight pass to be torn down."""
        self.state.cancel_timer()
        task = self._pass_task
        if task and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        # A cancelled pass may have queued a follow-up on its way out.
        self.state.cancel_timer()
        self.state.update_status(WatchStatus.IDLE)
        log.debug("Watch scheduler stopped.")
