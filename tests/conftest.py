import asyncio
import json
import logging
from pathlib import Path

import pytest

from extest.config import ResolvedConfiguration, TestConfiguration
from extest.telemetry import setup_logging


class FakePreparedRun:
    """Stands in for a platform's prepared run; records the order it was executed in."""

    def __init__(self, name: str, exit_code: int = 0, calls: list | None = None, error: Exception | None = None):
        self.name = name
        self.exit_code = exit_code
        self.calls = calls if calls is not None else []
        self.error = error
        self.contexts = []

    async def execute(self, context) -> int:
        self.calls.append(self.name)
        self.contexts.append(context)
        await asyncio.sleep(0)
        if self.error:
            raise self.error
        return self.exit_code

    def describe(self) -> dict:
        return {"name": self.name}


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """A small extension project with test files, a preload helper, and node_modules."""
    root = tmp_path / "project"
    (root / "test").mkdir(parents=True)
    (root / "test" / "a.spec.js").write_text("// a")
    (root / "test" / "b.spec.js").write_text("// b")
    (root / "test" / "helper.js").write_text("// not a spec")
    (root / "other").mkdir()
    (root / "other" / "c.spec.js").write_text("// c")
    (root / "setup").mkdir()
    (root / "setup" / "hooks.js").write_text("// hooks")
    pkg = root / "node_modules" / "ts-node-like"
    pkg.mkdir(parents=True)
    (pkg / "package.json").write_text(json.dumps({"main": "lib/register", "exports": {".": "./nope.js"}}))
    (pkg / "lib").mkdir()
    (pkg / "lib" / "register.js").write_text("// register")
    (root / "package.json").write_text(
        json.dumps({"name": "my-ext", "extensionDependencies": ["ms-vscode.dep-one", "Publisher.Dep-Two"]})
    )
    return root


@pytest.fixture
def config_file(project_dir: Path) -> Path:
    path = project_dir / ".vscode-test.json"
    path.write_text(
        json.dumps(
            {
                "tests": [
                    {"label": "a", "files": "test/*.spec.js"},
                    {"label": "b", "files": "other/*.spec.js"},
                ]
            }
        )
    )
    return path


@pytest.fixture
def resolved_config(project_dir: Path) -> ResolvedConfiguration:
    return ResolvedConfiguration(
        path=project_dir / ".vscode-test.json",
        tests=[
            TestConfiguration(label="a", files="test/*.spec.js"),
            TestConfiguration(label="b", files="other/*.spec.js"),
        ],
    )


@pytest.fixture
def fake_run() -> type[FakePreparedRun]:
    """Factory for recording prepared runs."""
    return FakePreparedRun


@pytest.fixture(autouse=True, scope="session")
def configure_logging() -> None:
    """Routes structlog through stdlib logging on stderr, as the CLI does."""
    setup_logging(level=logging.WARNING)
