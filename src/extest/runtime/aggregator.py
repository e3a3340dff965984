# src/extest/runtime/aggregator.py
"""
Executes prepared runs in configuration order and combines their exit codes.
"""
from collections.abc import Sequence

import structlog

from extest.args import RunArgs
from extest.config import ResolvedConfiguration
from extest.coverage import CoverageCoordinator
from extest.platforms import PreparedRun, RunContext
from extest.telemetry import StructLogger

log: StructLogger = structlog.get_logger("runtime.aggregator")


async def run_prepared(
    args: RunArgs,
    config: ResolvedConfiguration,
    prepared: Sequence[PreparedRun],
) -> int:
    """
    Runs each prepared run in order and returns the highest exit code.

    With ``args.bail`` the first non-zero result is returned immediately and the
    remaining runs are skipped. An exception from one run does not stop later
    runs unless bailing; the first such exception is re-raised once the
    sequence ends. Coverage, when enabled, is written exactly once after the
    sequence ends, whether it passed, failed, bailed, or raised.
    """
    coverage = CoverageCoordinator(config, args.coverage_output) if args.coverage else None
    context = RunContext(coverage_dir=coverage.target_dir if coverage else None)

    exit_code = 0
    first_error: Exception | None = None
    try:
        for position, run in enumerate(prepared):
            try:
                code = await run.execute(context)
            except Exception as e:
                if args.bail:
                    raise
                log.error("Prepared run raised, continuing with the next one", position=position, error=str(e))
                first_error = first_error or e
                continue
            log.debug("Prepared run finished", position=position, exit_code=code)
            if code != 0 and args.bail:
                log.info("Bailing after first failure", exit_code=code, skipped=len(prepared) - position - 1)
                return code
            exit_code = max(exit_code, code)
    finally:
        if coverage:
            coverage.write()

    if first_error is not None:
        raise first_error
    return exit_code
