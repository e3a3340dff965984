# src/extest/resolution/modules.py

"""
Node-style module resolution for runner preload modules.

This mirrors plain CommonJS ``require.resolve`` semantics as the runner inside
the editor will see them: package ``exports`` maps and extra extensions are
deliberately not honored, and resolution starts from the configuration
directory rather than from this tool's own location.
"""

import json
import os
from pathlib import Path

import structlog

from extest.exceptions import ModuleResolutionError
from extest.telemetry import StructLogger

log: StructLogger = structlog.get_logger("resolution.modules")

EXTENSIONS = (".js", ".json", ".node")


def _is_path_request(request: str) -> bool:
    return request.startswith(("./", "../", "/")) or request in (".", "..") or os.path.isabs(request)


def _load_as_file(path: Path) -> Path | None:
    if path.is_file():
        return path
    for ext in EXTENSIONS:
        candidate = path.with_name(path.name + ext)
        if candidate.is_file():
            return candidate
    return None


def _load_index(path: Path) -> Path | None:
    for ext in EXTENSIONS:
        candidate = path / f"index{ext}"
        if candidate.is_file():
            return candidate
    return None


def _load_as_directory(path: Path) -> Path | None:
    manifest = path / "package.json"
    if manifest.is_file():
        try:
            main = json.loads(manifest.read_text(encoding="utf-8")).get("main")
        except (OSError, ValueError):
            main = None
        if isinstance(main, str) and main:
            target = path / main
            found = _load_as_file(target) or _load_index(target)
            if found:
                return found
    return _load_index(path)


def _node_modules_dirs(start: Path) -> list[Path]:
    return [d / "node_modules" for d in (start, *start.parents) if d.name != "node_modules"]


def resolve_module(request: str, basedir: Path) -> str:
    """Resolves ``request`` from ``basedir`` and returns the absolute file path."""
    basedir = basedir.resolve()
    if _is_path_request(request):
        target = (basedir / request).resolve()
        found = _load_as_file(target) or _load_as_directory(target)
    else:
        found = None
        for modules_dir in _node_modules_dirs(basedir):
            target = modules_dir / request
            found = _load_as_file(target) or _load_as_directory(target)
            if found:
                break

    if found is None:
        raise ModuleResolutionError(request, str(basedir), bare=not _is_path_request(request))

    log.debug("Resolved module", request=request, path=str(found))
    return str(found)
