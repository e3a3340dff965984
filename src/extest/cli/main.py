# src/extest/cli/main.py

"""
Main CLI entry point for extest using Click.
"""

import asyncio
import logging
import sys
from pathlib import Path

import click
import structlog
from rich.console import Console

from extest import __version__
from extest.args import RunArgs
from extest.cli.utils import logging_options, setup_logging_from_options
from extest.exceptions import ExtestError
from extest.runtime import run_cli
from extest.telemetry import StructLogger

log: StructLogger = structlog.get_logger("cli.main")


def _execute(args: RunArgs, console: Console) -> int:
    """Runs the driver and maps its outcome onto a process exit code."""
    try:
        return asyncio.run(run_cli(args, console=console))
    except KeyboardInterrupt:
        log.warning("Shutdown initiated by KeyboardInterrupt (CTRL-C).")
        return 130
    except ExtestError as e:
        if e.user_facing:
            log.debug("User-facing error", error=str(e))
            click.echo(f"Error: {e}", err=True)
        else:
            log.critical("extest failed", error=str(e))
            console.print_exception()
        return 1
    except Exception:
        log.critical("extest exited with an unhandled exception.")
        console.print_exception()
        return 1
    finally:
        logging.shutdown()


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(__version__, "-V", "--version", package_name="extest")
@click.option(
    "-c",
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    envvar="EXTEST_CONFIG",
    show_envvar=True,
    help="Config file to use. Defaults to the nearest .vscode-test.{json,toml,py}.",
)
@click.option("--label", multiple=True, help="Only run the configuration with this label, or at this 0-based index.")
@click.option("--watch", is_flag=True, help="Re-run tests whenever files change.")
@click.option("--watch-files", multiple=True, help="Globs or paths to watch (defaults to the config directory).")
@click.option("--watch-ignore", multiple=True, help="Globs to ignore while watching.")
@click.option("--bail", is_flag=True, help="Stop after the first configuration that fails.")
@click.option("--coverage", is_flag=True, help="Collect code coverage.")
@click.option("--coverage-output", default=None, help="Directory for coverage output (relative to the config).")
@click.option("--run", "run_files", multiple=True, help="Test file to run instead of the configured files.")
@click.option("--file", "preload_files", multiple=True, help="Module to load before the tests.")
@click.option("--ignore", multiple=True, help="Glob of test files to skip.")
@click.option("--list-configuration", is_flag=True, help="Print the resolved runs as JSON and exit.")
@click.option("--install-extensions", multiple=True, help="Extension to install before running tests.")
@click.option("--skip-extension-dependencies", is_flag=True, help="Do not install extensionDependencies.")
@click.option("--code-version", default=None, help='Editor version to test against ("stable", "insiders", "x.y.z").')
@click.option("-g", "--grep", default=None, help="Only run tests matching this pattern.")
@click.option("-f", "--fgrep", default=None, help="Only run tests containing this string.")
@click.option("-i", "--invert", is_flag=True, help="Invert --grep and --fgrep matches.")
@click.option("-t", "--timeout", type=int, default=None, help="Test timeout in milliseconds.")
@click.option("-R", "--reporter", default=None, help="Test reporter to use.")
@click.option("--retries", type=int, default=None, help="Retry failed tests this many times.")
@click.option("--forbid-only", is_flag=True, help="Fail if a test is marked exclusive.")
@click.option("--fail-zero", is_flag=True, help="Fail when no tests ran.")
@logging_options
def cli(
    config_path: Path | None,
    label: tuple[str, ...],
    watch: bool,
    watch_files: tuple[str, ...],
    watch_ignore: tuple[str, ...],
    bail: bool,
    coverage: bool,
    coverage_output: str | None,
    run_files: tuple[str, ...],
    preload_files: tuple[str, ...],
    ignore: tuple[str, ...],
    list_configuration: bool,
    install_extensions: tuple[str, ...],
    skip_extension_dependencies: bool,
    code_version: str | None,
    grep: str | None,
    fgrep: str | None,
    invert: bool,
    timeout: int | None,
    reporter: str | None,
    retries: int | None,
    forbid_only: bool,
    fail_zero: bool,
    log_level: str | None,
    log_file: str | None,
    json_logs: bool | None,
):
    """
    extest: run editor-extension tests from a declarative configuration.

    Loads the configuration, prepares one run per selected test configuration,
    and executes them in order, or keeps re-running them with --watch.
    """
    setup_logging_from_options(log_level, log_file, json_logs)

    args = RunArgs(
        config=config_path,
        label=label,
        watch=watch,
        watch_files=watch_files,
        watch_ignore=watch_ignore,
        bail=bail,
        coverage=coverage,
        coverage_output=coverage_output,
        run=run_files,
        file=preload_files,
        ignore=ignore,
        list_configuration=list_configuration,
        install_extensions=install_extensions,
        skip_extension_dependencies=skip_extension_dependencies,
        code_version=code_version,
        grep=grep,
        fgrep=fgrep,
        invert=invert,
        timeout=timeout,
        reporter=reporter,
        retries=retries,
        forbid_only=forbid_only,
        fail_zero=fail_zero,
    )
    log.debug("Parsed arguments", args=str(args))

    exit_code = _execute(args, Console(stderr=True))
    sys.exit(exit_code)


if __name__ == "__main__":
    cli()

# 🖥️⚙️
