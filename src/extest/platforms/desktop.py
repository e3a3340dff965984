# src/extest/platforms/desktop.py

"""
Desktop platform: runs extension tests inside a downloaded or installed editor.
"""

import asyncio
import json
import os
import sys
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

import attrs
import structlog
from attrs import define, field

from extest.args import RunArgs
from extest.config import DESKTOP_PLATFORM, ResolvedConfiguration, TestConfiguration, ensure_list
from extest.exceptions import ExtensionInstallError, LauncherUnavailableError
from extest.platforms.protocols import PreparedRun, RunContext, RunOutcome
from extest.resolution import gather_files, resolve_module
from extest.telemetry import StructLogger

log: StructLogger = structlog.get_logger("platforms.desktop")

# Entry point loaded by the editor's extension host; reads TEST_OPTIONS_ENV.
RUNNER_PATH = str(Path(__file__).resolve().parent.parent / "assets" / "runner.cjs")
TEST_OPTIONS_ENV = "VSCODE_TEST_OPTIONS"
COVERAGE_ENV = "NODE_V8_COVERAGE"
RUN_AS_NODE_ENV = "ELECTRON_RUN_AS_NODE"
CACHE_DIRNAME = ".vscode-test"


def extension_key(extension: str) -> str:
    """Identity of an extension request, ignoring any ``@version`` qualifier."""
    return extension.split("@", 1)[0].lower()


def merge_extensions(*sources: Iterable[str]) -> list[str]:
    """Unions extension requests by id, keeping the first-seen version of each."""
    merged: dict[str, str] = {}
    for source in sources:
        for extension in source:
            merged.setdefault(extension_key(extension), extension)
    return list(merged.values())


def read_extension_dependencies(extension_path: str) -> list[str]:
    manifest = Path(extension_path) / "package.json"
    try:
        data = json.loads(manifest.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return []
    except ValueError as e:
        log.warning("Could not parse extension manifest", path=str(manifest), error=str(e))
        return []
    deps = data.get("extensionDependencies") or []
    return [d for d in deps if isinstance(d, str)]


@define(frozen=True, slots=True)
class DesktopPreparedRun:
    """A desktop test run with every path, file and option already resolved."""

    args: RunArgs = field()
    config_path: Path = field()
    cache_dir: Path = field()
    test: TestConfiguration = field()
    extension_development_path: tuple[str, ...] = field(converter=tuple)
    preload: tuple[str, ...] = field(converter=tuple)
    files: tuple[str, ...] = field(converter=tuple)
    mocha_opts: Mapping[str, Any] = field(factory=dict)
    color_default: bool = field(default=False)

    def options_blob(self) -> str:
        return json.dumps(
            {
                "mochaOpts": dict(self.mocha_opts),
                "colorDefault": self.color_default,
                "preload": list(self.preload),
                "files": list(self.files),
            }
        )

    def build_env(self, coverage_dir: str | None) -> dict[str, str | None]:
        """Environment overrides for the editor; ``None`` means the variable is removed."""
        env: dict[str, str | None] = dict(self.test.env)
        env[TEST_OPTIONS_ENV] = self.options_blob()
        env[RUN_AS_NODE_ENV] = None
        env[COVERAGE_ENV] = coverage_dir
        return env

    def describe(self) -> dict[str, Any]:
        return {
            "path": str(self.config_path),
            "config": attrs.asdict(self.test, recurse=True),
            "extensionTestsPath": RUNNER_PATH,
            "extensionDevelopmentPath": list(self.extension_development_path),
            "env": self.build_env(None),
        }

    def requested_extensions(self) -> list[str]:
        dependencies: list[str] = []
        if not (self.test.skip_extension_dependencies or self.args.skip_extension_dependencies):
            for path in self.extension_development_path:
                dependencies.extend(read_extension_dependencies(path))
        return merge_extensions(dependencies, self.test.install_extensions, self.args.install_extensions)

    @property
    def reuse_machine_install(self) -> bool:
        return bool(self.test.use_installation and self.test.use_installation.from_machine)

    async def _resolve_executable(self, launcher: Any) -> Path:
        installation = self.test.use_installation
        if installation and installation.from_path:
            path = Path(installation.from_path).expanduser()
            if not path.is_absolute():
                path = (self.config_path.parent / path).resolve()
            return path
        spec = launcher.parse_version(self.args.code_version or self.test.version)
        return await launcher.download_build(spec, self.cache_dir, self.test.download.timeout)

    async def _install_extensions(self, launcher: Any, executable: Path, extensions: list[str]) -> None:
        cli_args = launcher.resolve_cli_args(executable, self.cache_dir, self.reuse_machine_install)
        for extension in extensions:
            cli_args.extend(["--install-extension", extension])
        log.info("Installing extensions", extensions=extensions, emoji_key="load")
        result = await launcher.run_command(cli_args)
        if result.exit_code != 0:
            raise ExtensionInstallError(result.exit_code, result.output)

    async def execute(self, context: RunContext) -> int:
        run_log = log.bind(label=self.test.label)
        try:
            from extest import launcher
        except ImportError as e:
            raise LauncherUnavailableError(
                f"Running tests requires the launcher dependencies, which failed to import ({e}). "
                "Install them with `pip install extest`.",
                details=e,
            ) from e

        executable: Path | None = None
        extensions = self.requested_extensions()
        if extensions:
            executable = await self._resolve_executable(launcher)
            await self._install_extensions(launcher, executable, extensions)
        if executable is None:
            executable = await self._resolve_executable(launcher)

        env = dict(os.environ)
        for key, value in self.build_env(context.coverage_dir).items():
            if value is None:
                env.pop(key, None)
            else:
                env[key] = value

        launch_args = [*self.test.launch_args, *launcher.isolation_args(self.cache_dir, self.reuse_machine_install)]
        result = await launcher.launch_tests(
            executable,
            self.extension_development_path,
            RUNNER_PATH,
            launch_args,
            env,
        )
        outcome = RunOutcome.PASSED if result.exit_code == 0 else RunOutcome.TESTS_FAILED
        run_log.info("Test run finished", outcome=outcome.name, editor_exit_code=result.exit_code)
        return outcome.exit_code


class DesktopPlatform:
    """Claims configurations whose platform is unset or ``desktop``."""

    name = DESKTOP_PLATFORM

    async def prepare(
        self,
        args: RunArgs,
        config: ResolvedConfiguration,
        test: TestConfiguration,
    ) -> PreparedRun | None:
        if test.platform not in (None, DESKTOP_PLATFORM):
            return None

        launch_args = list(test.launch_args)
        if test.workspace_folder:
            launch_args.append(str(config.resolve_path(test.workspace_folder)))
        dev_paths = [str(config.resolve_path(p)) for p in ensure_list(test.extension_development_path)]
        if not dev_paths:
            dev_paths = [str(config.dir)]

        overrides: dict[str, Any] = {"launch_args": launch_args}
        if args.run:
            overrides["files"] = [str((args.cwd / r).resolve()) for r in args.run]
        test = attrs.evolve(test, **overrides)

        preload = [
            *[await asyncio.to_thread(resolve_module, p, config.dir) for p in test.preload],
            *[await asyncio.to_thread(resolve_module, p, args.cwd) for p in args.file],
        ]
        files = await asyncio.to_thread(gather_files, config, test, args)

        mocha_opts = {k: v for k, v in test.mocha.items() if k != "preload"}
        mocha_opts.update(args.runner_overrides())

        log.debug("Prepared desktop run", label=test.label, files=len(files), preload=len(preload), emoji_key="prepare")
        return DesktopPreparedRun(
            args=args,
            config_path=config.path,
            cache_dir=config.dir / CACHE_DIRNAME,
            test=test,
            extension_development_path=dev_paths,
            preload=preload,
            files=files,
            mocha_opts=mocha_opts,
            color_default=sys.stdout.isatty(),
        )


# 🔼⚙️
