# src/extest/resolution/files.py

"""
Expands test-file patterns into concrete absolute paths.
"""

import glob
import os
import re
from collections.abc import Iterable
from functools import lru_cache
from pathlib import Path

import structlog

from extest.args import RunArgs
from extest.config import ResolvedConfiguration, TestConfiguration, ensure_list
from extest.telemetry import StructLogger

log: StructLogger = structlog.get_logger("resolution.files")


def _translate_segment(segment: str) -> str:
    out: list[str] = []
    i, n = 0, len(segment)
    while i < n:
        c = segment[i]
        i += 1
        if c == "*":
            out.append("[^/]*")
        elif c == "?":
            out.append("[^/]")
        elif c == "[":
            # The first character of a class (after any negation) may itself be "]".
            start = i + 1 if i < n and segment[i] == "!" else i
            end = segment.find("]", start + 1)
            if end == -1:
                out.append(re.escape(c))
                continue
            body = segment[i:end]
            i = end + 1
            negate = body[:1] == "!"
            if negate:
                body = body[1:]
            body = body.replace("\\", "\\\\").replace("[", "\\[").replace("]", "\\]")
            if body.startswith("^"):
                body = "\\" + body
            out.append(f"[^/{body}]" if negate else f"[{body}]")
        else:
            out.append(re.escape(c))
    return "".join(out)


@lru_cache(maxsize=256)
def _compile_glob(pattern: str) -> re.Pattern[str]:
    segments = pattern.split("/")
    parts: list[str] = []
    for index, segment in enumerate(segments):
        last = index == len(segments) - 1
        if segment == "**":
            parts.append(".*" if last else "(?:[^/]*/)*")
        else:
            parts.append(_translate_segment(segment) + ("" if last else "/"))
    return re.compile("".join(parts), re.DOTALL)


def matches_glob(path: str, pattern: str) -> bool:
    """
    Matches ``path`` against a glob pattern the way ``glob.glob(recursive=True)`` expands it.

    ``*`` and ``?`` never cross a ``/``; a ``**`` segment matches zero or more
    directories, so ``src/**/*.ts`` matches ``src/a.ts`` and ``**/node_modules/**``
    matches ``node_modules/x``.
    """
    if os.sep != "/":
        path = path.replace(os.sep, "/")
        pattern = pattern.replace(os.sep, "/")
    return _compile_glob(pattern).fullmatch(path) is not None


def is_ignored(path: str, base: Path, patterns: Iterable[str]) -> bool:
    """Checks an absolute path against ignore patterns, both as-is and relative to ``base``."""
    candidates = [path]
    try:
        candidates.append(os.path.relpath(path, base))
    except ValueError:
        pass  # different drive on Windows
    return any(matches_glob(c, p) for p in patterns for c in candidates)


def expand_pattern(pattern: str, base: Path) -> list[str]:
    """Returns absolute files matching ``pattern`` relative to ``base``, sorted."""
    matches = glob.glob(pattern, root_dir=str(base), recursive=True)
    return sorted(str(base / m) for m in matches if (base / m).is_file())


def gather_files(config: ResolvedConfiguration, test: TestConfiguration, args: RunArgs) -> list[str]:
    """
    Collects the concrete test files for a configuration.

    Absolute literal paths bypass globbing but are still subject to the
    ``--ignore`` patterns. Duplicates are dropped, first occurrence wins.
    """
    ignore = list(args.ignore)
    files: dict[str, None] = {}
    for pattern in ensure_list(test.files):
        if os.path.isabs(pattern):
            found = [pattern]
        else:
            found = expand_pattern(pattern, config.dir)
        for path in found:
            if ignore and is_ignored(path, config.dir, ignore):
                continue
            files.setdefault(path, None)

    log.debug("Gathered test files", label=test.label, count=len(files))
    return list(files)
