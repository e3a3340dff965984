#
# tests/unit/test_coverage.py
#
"""
Tests for merging and filtering raw coverage dumps.
"""

import json
from pathlib import Path

from extest.config import CoverageConfig, ResolvedConfiguration
from extest.coverage import OUTPUT_FILENAME, CoverageCoordinator


def _entry(path: Path | str) -> dict:
    url = path.as_uri() if isinstance(path, Path) else path
    return {"url": url, "functions": []}


def _dump(coordinator: CoverageCoordinator, name: str, *entries: dict) -> None:
    (Path(coordinator.target_dir) / name).write_text(json.dumps({"result": list(entries)}))


def test_merges_dumps_and_applies_filters(project_dir: Path) -> None:
    config = ResolvedConfiguration(
        path=project_dir / ".vscode-test.json",
        tests=[],
        coverage=CoverageConfig(include=["src/**"], exclude=["**/*.test.js"]),
    )
    coordinator = CoverageCoordinator(config)
    _dump(coordinator, "coverage-1.json", _entry(project_dir / "src" / "a.js"), _entry("node:internal/fs"))
    _dump(
        coordinator,
        "coverage-2.json",
        _entry(project_dir / "src" / "a.test.js"),
        _entry(project_dir / "lib" / "b.js"),
        _entry(project_dir / "src" / "c.js"),
    )

    output = coordinator.write()

    assert output == (project_dir / "coverage" / OUTPUT_FILENAME).resolve()
    urls = [e["url"] for e in json.loads(output.read_text())["result"]]
    assert urls == [(project_dir / "src" / "a.js").as_uri(), (project_dir / "src" / "c.js").as_uri()]
    assert not Path(coordinator.target_dir).exists()


def test_unreadable_dump_is_skipped(project_dir: Path) -> None:
    config = ResolvedConfiguration(path=project_dir / ".vscode-test.json", tests=[])
    coordinator = CoverageCoordinator(config, output="cov")
    (Path(coordinator.target_dir) / "broken.json").write_text("{")
    _dump(coordinator, "ok.json", _entry(project_dir / "src" / "a.js"))

    output = coordinator.write()

    assert output.parent == (project_dir / "cov").resolve()
    assert len(json.loads(output.read_text())["result"]) == 1
