# src/extest/runtime/driver.py

"""
Top-level flow: locate and load the configuration, select tests, then list,
run once, or watch.
"""

import asyncio
import glob
import json
from collections.abc import Sequence

import structlog
from rich.console import Console

from extest.args import RunArgs
from extest.config import ResolvedConfiguration, find_default_config, load_config
from extest.coverage import coverage_output_dir
from extest.exceptions import ConfigurationError
from extest.platforms import PreparedRun, prepare_all
from extest.runtime.aggregator import run_prepared
from extest.runtime.scheduler import WatchScheduler
from extest.runtime.watcher import FileWatcher, WatchEvent, WatchPlan
from extest.telemetry import StructLogger

log: StructLogger = structlog.get_logger("runtime.driver")


def select_tests(config: ResolvedConfiguration, labels: Sequence[str]) -> list[int]:
    """
    Returns the indices of the enabled tests, in configuration order.

    Numeric selectors are always 0-based indices, even if some test happens to
    be labelled with the same digits. No selectors enables every test.
    """
    if not labels:
        return list(range(len(config.tests)))

    selected: set[int] = set()
    for selector in labels:
        index: int | None = None
        if selector.isdigit():
            candidate = int(selector)
            if candidate < len(config.tests):
                index = candidate
        else:
            index = next((i for i, t in enumerate(config.tests) if t.label == selector), None)
        if index is None:
            raise ConfigurationError(f'Could not find a configuration with label "{selector}"')
        selected.add(index)
    return sorted(selected)


async def resolve_config(args: RunArgs) -> ResolvedConfiguration:
    path = args.config if args.config else await asyncio.to_thread(find_default_config, args.cwd)
    if not path.is_absolute():
        path = args.cwd / path
    return await load_config(path)


def list_configuration(prepared: Sequence[PreparedRun]) -> str:
    return json.dumps([run.describe() for run in prepared], indent=2)


def watch_plan(args: RunArgs, config: ResolvedConfiguration) -> WatchPlan:
    """Builds the watch plan; the coverage output dir is ignored so a pass never retriggers itself."""
    ignore = list(args.watch_ignore)
    if args.coverage:
        output_dir = glob.escape(coverage_output_dir(config, args.coverage_output).as_posix())
        ignore.extend([output_dir, f"{output_dir}/**"])
    return WatchPlan.build(config.dir, args.watch_files, ignore)


async def watch(
    args: RunArgs,
    config: ResolvedConfiguration,
    indices: Sequence[int],
    console: Console | None = None,
) -> None:
    """Runs the debounced re-run loop until the process is interrupted."""
    event_queue: asyncio.Queue[WatchEvent] = asyncio.Queue()

    async def prepare() -> list[PreparedRun]:
        return await prepare_all(args, config, indices)

    async def run(prepared: Sequence[PreparedRun]) -> int:
        return await run_prepared(args, config, prepared)

    scheduler = WatchScheduler(event_queue, prepare, run, console=console)
    watcher = FileWatcher(watch_plan(args, config), event_queue)
    watcher.start()
    try:
        await scheduler.run()
    finally:
        watcher.stop()


async def run_cli(args: RunArgs, console: Console | None = None) -> int:
    """Runs one invocation and returns the process exit code. Errors propagate to the caller."""
    config = await resolve_config(args)
    indices = select_tests(config, args.label)
    log.debug("Selected tests", indices=indices, labels=[config.tests[i].label for i in indices])

    if args.list_configuration:
        prepared = await prepare_all(args, config, indices)
        print(list_configuration(prepared))
        return 0

    if args.watch:
        await watch(args, config, indices, console)
        return 0

    # Every run is prepared before any executes, so a bad config never half-runs.
    prepared = await prepare_all(args, config, indices)
    exit_code = await run_prepared(args, config, prepared)
    log.info("All test runs finished", exit_code=exit_code, emoji_key="success" if exit_code == 0 else "fail")
    return exit_code
