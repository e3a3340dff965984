#
# tests/unit/test_launcher.py
#
"""
Tests for editor download, path derivation, and process launching.
"""

import asyncio
import io
import os
import sys
import tarfile
from pathlib import Path
from unittest.mock import patch

import httpx
import pytest

from extest.exceptions import LauncherError
from extest.launcher import (
    BuildSpec,
    cli_path,
    download_build,
    executable_path,
    isolation_args,
    launch_tests,
    parse_version,
    run_command,
)

posix_only = pytest.mark.skipif(sys.platform == "win32", reason="uses a POSIX shell script as the editor")


class TestParseVersion:
    @pytest.mark.parametrize(
        ("version", "expected"),
        [
            (None, ("latest", "stable")),
            ("stable", ("latest", "stable")),
            ("insiders", ("latest", "insider")),
            ("1.85.0", ("1.85.0", "stable")),
            ("1.86.0-insider", ("1.86.0", "insider")),
        ],
    )
    def test_versions(self, version: str | None, expected: tuple[str, str]) -> None:
        spec = parse_version(version, "linux-x64")

        assert (spec.version, spec.quality) == expected
        assert spec.url == f"https://update.code.visualstudio.com/{expected[0]}/linux-x64/{expected[1]}"


class TestPaths:
    def test_linux_paths(self, tmp_path: Path) -> None:
        exe = executable_path(tmp_path, BuildSpec("latest", "insider", "linux-x64"))

        assert exe == tmp_path / "code-insiders"
        assert cli_path(exe) == tmp_path / "bin" / "code-insiders"

    def test_darwin_paths(self, tmp_path: Path) -> None:
        exe = executable_path(tmp_path, BuildSpec("latest", "stable", "darwin-arm64"))

        assert exe.name == "Electron"
        assert cli_path(exe) == tmp_path / "Visual Studio Code.app" / "Contents" / "Resources" / "app" / "bin" / "code"

    def test_windows_paths(self, tmp_path: Path) -> None:
        exe = executable_path(tmp_path, BuildSpec("1.85.0", "stable", "win32-x64-archive"))

        assert cli_path(exe) == tmp_path / "bin" / "code.cmd"

    def test_isolation_args(self, tmp_path: Path) -> None:
        assert isolation_args(tmp_path, reuse_machine_install=True) == []
        assert isolation_args(tmp_path, reuse_machine_install=False) == [
            f"--extensions-dir={tmp_path / 'extensions'}",
            f"--user-data-dir={tmp_path / 'user-data'}",
        ]


def _linux_tarball() -> bytes:
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tf:
        for name, data in (("VSCode-linux-x64/code", b"#!/bin/sh\n"), ("VSCode-linux-x64/bin/code", b"#!/bin/sh\n")):
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mode = 0o755
            tf.addfile(info, io.BytesIO(data))
    return buffer.getvalue()


def _client_with(handler):
    real_client = httpx.AsyncClient

    def factory(**kwargs):
        return real_client(transport=httpx.MockTransport(handler), **kwargs)

    return patch("extest.launcher.download.httpx.AsyncClient", side_effect=factory)


@pytest.mark.asyncio
class TestDownloadBuild:
    async def test_downloads_and_strips_top_level_directory(self, tmp_path: Path) -> None:
        requested: list[str] = []
        payload = _linux_tarball()

        def handler(request: httpx.Request) -> httpx.Response:
            requested.append(str(request.url))
            return httpx.Response(200, content=payload)

        spec = BuildSpec("1.85.0", "stable", "linux-x64")
        with _client_with(handler):
            exe = await download_build(spec, tmp_path)

        assert requested == [spec.url]
        assert exe == tmp_path / "vscode-linux-x64-1.85.0" / "code"
        assert exe.is_file()
        assert cli_path(exe).is_file()
        assert not list(tmp_path.glob("extest-download-*"))

    async def test_cached_build_is_reused(self, tmp_path: Path) -> None:
        spec = BuildSpec("latest", "stable", "linux-x64")
        exe = executable_path(tmp_path / "vscode-linux-x64-latest", spec)
        exe.parent.mkdir(parents=True)
        exe.write_text("")

        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        with _client_with(handler):
            assert await download_build(spec, tmp_path) == exe

    async def test_http_error_becomes_launcher_error(self, tmp_path: Path) -> None:
        spec = BuildSpec("9.9.9", "stable", "linux-x64")
        with _client_with(lambda request: httpx.Response(404)):
            with pytest.raises(LauncherError, match="HTTP 404"):
                await download_build(spec, tmp_path)
        assert not (tmp_path / "vscode-linux-x64-9.9.9").exists()


@pytest.mark.asyncio
class TestProcesses:
    async def test_run_command_captures_output(self) -> None:
        result = await run_command([sys.executable, "-c", "import sys; print('out'); print('err', file=sys.stderr)"])

        assert result.exit_code == 0
        assert "out" in result.output
        assert "err" in result.output

    async def test_run_command_missing_binary(self, tmp_path: Path) -> None:
        with pytest.raises(LauncherError, match="Failed to start"):
            await run_command([str(tmp_path / "missing")])

    @posix_only
    async def test_launch_tests_returns_editor_exit_code(self, tmp_path: Path) -> None:
        editor = tmp_path / "code"
        editor.write_text('#!/bin/sh\necho "$@" > "$(dirname "$0")/args.txt"\nexit 3\n')
        editor.chmod(0o755)

        result = await launch_tests(editor, ["/ext"], "/runner.cjs", ["--foo"], {"PATH": "/usr/bin:/bin"})

        assert result.exit_code == 3
        recorded = (tmp_path / "args.txt").read_text()
        assert recorded.startswith("--foo ")
        assert "--extensionTestsPath=/runner.cjs" in recorded
        assert "--extensionDevelopmentPath=/ext" in recorded

    @posix_only
    async def test_signal_kill_is_a_launcher_error(self, tmp_path: Path) -> None:
        editor = tmp_path / "code"
        editor.write_text("#!/bin/sh\nkill -9 $$\n")
        editor.chmod(0o755)

        with pytest.raises(LauncherError, match="signal 9"):
            await launch_tests(editor, [], "/runner.cjs", [], {"PATH": "/usr/bin:/bin"})

    @posix_only
    async def test_cancelled_launch_terminates_the_editor(self, tmp_path: Path) -> None:
        editor = tmp_path / "code"
        editor.write_text('#!/bin/sh\necho $$ > "$(dirname "$0")/pid"\nexec sleep 30\n')
        editor.chmod(0o755)

        task = asyncio.create_task(launch_tests(editor, [], "/runner.cjs", [], {"PATH": "/usr/bin:/bin"}))
        pid = await _wait_for_pid(tmp_path / "pid")
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        with pytest.raises(ProcessLookupError):
            os.kill(pid, 0)

    @posix_only
    async def test_cancelled_command_terminates_the_child(self, tmp_path: Path) -> None:
        pid_file = tmp_path / "pid"
        task = asyncio.create_task(run_command(["/bin/sh", "-c", f'echo $$ > "{pid_file}"; exec sleep 30']))
        pid = await _wait_for_pid(pid_file)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        with pytest.raises(ProcessLookupError):
            os.kill(pid, 0)


async def _wait_for_pid(pid_file: Path) -> int:
    for _ in range(200):
        text = pid_file.read_text().strip() if pid_file.exists() else ""
        if text:
            return int(text)
        await asyncio.sleep(0.025)
    raise AssertionError(f"child never wrote {pid_file}")
