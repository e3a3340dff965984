# src/extest/cli/utils.py

import logging

import click
import structlog

from extest.telemetry.logger import setup_logging as core_setup_logging

log = structlog.get_logger("cli.utils")

LOG_LEVEL_CHOICES = click.Choice(list(logging.getLevelNamesMapping().keys()), case_sensitive=False)


def logging_options(f):
    """Decorator to add logging options to any command."""
    f = click.option(
        "-l",
        "--log-level",
        type=LOG_LEVEL_CHOICES,
        default=None,
        envvar="EXTEST_LOG_LEVEL",
        help="Set the logging level.",
    )(f)
    f = click.option(
        "--log-file",
        type=click.Path(dir_okay=False, writable=True, resolve_path=True),
        default=None,
        envvar="EXTEST_LOG_FILE",
        help="Path to write logs to a file (JSON format).",
    )(f)
    f = click.option(
        "--json-logs",
        is_flag=True,
        default=None,
        envvar="EXTEST_JSON_LOGS",
        help="Output console logs as JSON.",
    )(f)
    return f


def setup_logging_from_options(
    log_level: str | None,
    log_file: str | None,
    json_logs: bool | None,
    default_log_level: str = "WARNING",
) -> None:
    """Setup logging from the parsed logging options."""
    log_level_str = (log_level or default_log_level).upper()
    numeric_level = logging.getLevelNamesMapping().get(log_level_str, logging.WARNING)

    core_setup_logging(
        level=numeric_level,
        json_logs=bool(json_logs),
        log_file=log_file,
    )

    log.debug(
        "CLI logging initialized via utils",
        level=log_level_str,
        file=log_file or "console",
        json=bool(json_logs),
    )

# ⚙️🛠️
