# src/extest/coverage.py

"""
Collects raw V8 coverage written by test runs and merges it into one output file.
"""

import json
import shutil
import tempfile
from pathlib import Path
from urllib.parse import unquote, urlparse

import structlog

from extest.config import CoverageConfig, ResolvedConfiguration
from extest.resolution import is_ignored
from extest.telemetry import StructLogger

log: StructLogger = structlog.get_logger("coverage")

OUTPUT_FILENAME = "coverage-final.json"


def _script_path(url: str) -> str | None:
    parsed = urlparse(url)
    if parsed.scheme == "file":
        return unquote(parsed.path)
    if not parsed.scheme and url.startswith("/"):
        return url
    return None


def coverage_output_dir(config: ResolvedConfiguration, output: str | None = None) -> Path:
    """Directory the merged coverage file is written to; ``output`` overrides the configured one."""
    settings = config.coverage or CoverageConfig()
    return config.resolve_path(output or settings.output)


class CoverageCoordinator:
    """Owns the raw coverage directory for one aggregation pass."""

    def __init__(self, config: ResolvedConfiguration, output: str | None = None):
        self.settings = config.coverage or CoverageConfig()
        self.base_dir = config.dir
        self.output_dir = coverage_output_dir(config, output)
        self.target_dir = tempfile.mkdtemp(prefix="extest-coverage-")
        log.debug("Coverage collection enabled", target_dir=self.target_dir, emoji_key="coverage")

    def _keep(self, path: str) -> bool:
        if self.settings.include and not is_ignored(path, self.base_dir, self.settings.include):
            return False
        return not (self.settings.exclude and is_ignored(path, self.base_dir, self.settings.exclude))

    def collect(self) -> list[dict]:
        """Reads every dump in the target dir and returns the script entries that pass the filters."""
        entries: list[dict] = []
        for dump in sorted(Path(self.target_dir).glob("*.json")):
            try:
                data = json.loads(dump.read_text(encoding="utf-8"))
            except (OSError, ValueError) as e:
                log.warning("Skipping unreadable coverage dump", path=str(dump), error=str(e))
                continue
            for entry in data.get("result", []):
                path = _script_path(entry.get("url", ""))
                if path is not None and self._keep(path):
                    entries.append(entry)
        return entries

    def write(self) -> Path:
        """Writes the merged coverage file and removes the raw dumps."""
        try:
            entries = self.collect()
            self.output_dir.mkdir(parents=True, exist_ok=True)
            output_file = self.output_dir / OUTPUT_FILENAME
            output_file.write_text(json.dumps({"result": entries}), encoding="utf-8")
            log.info("Coverage written", path=str(output_file), scripts=len(entries), emoji_key="coverage")
            return output_file
        finally:
            shutil.rmtree(self.target_dir, ignore_errors=True)


# 🔼⚙️
