# src/extest/launcher/download.py

"""
Downloads editor builds from the update service and locates their executables.
"""

import asyncio
import os
import platform as host_platform
import shutil
import stat
import sys
import tarfile
import tempfile
import zipfile
from pathlib import Path

import httpx
import structlog
from attrs import define

from extest.exceptions import LauncherError
from extest.telemetry import StructLogger

log: StructLogger = structlog.get_logger("launcher.download")

UPDATE_URL = "https://update.code.visualstudio.com"
DEFAULT_TIMEOUT = 15.0


@define(frozen=True, slots=True)
class BuildSpec:
    """A concrete build to fetch: URL version segment, quality, and platform id."""

    version: str
    quality: str
    platform_id: str

    @property
    def url(self) -> str:
        return f"{UPDATE_URL}/{self.version}/{self.platform_id}/{self.quality}"

    @property
    def is_insiders(self) -> bool:
        return self.quality == "insider"


def detect_platform_id() -> str:
    machine = host_platform.machine().lower()
    arm = machine in ("arm64", "aarch64")
    if sys.platform == "darwin":
        return "darwin-arm64" if arm else "darwin"
    if sys.platform == "win32":
        return "win32-arm64-archive" if arm else "win32-x64-archive"
    return "linux-arm64" if arm else "linux-x64"


def parse_version(version: str | None, platform_id: str | None = None) -> BuildSpec:
    """Maps ``stable``/``insiders``/``x.y.z[-insider]`` onto a BuildSpec."""
    platform_id = platform_id or detect_platform_id()
    version = (version or "stable").strip()
    if version == "stable":
        return BuildSpec("latest", "stable", platform_id)
    if version == "insiders":
        return BuildSpec("latest", "insider", platform_id)
    if version.endswith("-insider"):
        return BuildSpec(version.removesuffix("-insider"), "insider", platform_id)
    return BuildSpec(version, "stable", platform_id)


def executable_path(install_dir: Path, spec: BuildSpec) -> Path:
    if spec.platform_id.startswith("darwin"):
        app = "Visual Studio Code - Insiders.app" if spec.is_insiders else "Visual Studio Code.app"
        return install_dir / app / "Contents" / "MacOS" / "Electron"
    if spec.platform_id.startswith("win32"):
        return install_dir / ("Code - Insiders.exe" if spec.is_insiders else "Code.exe")
    return install_dir / ("code-insiders" if spec.is_insiders else "code")


def cli_path(executable: Path) -> Path:
    """Returns the editor's command-line entry point for a given executable."""
    if executable.name == "Electron":
        # .../X.app/Contents/MacOS/Electron -> .../X.app/Contents/Resources/app/bin/code
        return executable.parent.parent / "Resources" / "app" / "bin" / "code"
    if executable.suffix == ".exe":
        name = "code-insiders.cmd" if "Insiders" in executable.name else "code.cmd"
        return executable.parent / "bin" / name
    return executable.parent / "bin" / executable.name


def _extract_zip(archive: Path, dest: Path) -> None:
    with zipfile.ZipFile(archive) as zf:
        for info in zf.infolist():
            target = Path(zf.extract(info, dest))
            mode = info.external_attr >> 16
            if mode and not info.is_dir():
                target.chmod(stat.S_IMODE(mode))


def _extract_tar(archive: Path, dest: Path) -> None:
    # The linux tarball wraps everything in a single top-level directory; strip it.
    with tarfile.open(archive, "r:gz") as tf:
        members = []
        for member in tf.getmembers():
            parts = Path(member.name).parts
            if len(parts) <= 1:
                continue
            member.name = str(Path(*parts[1:]))
            members.append(member)
        tf.extractall(dest, members=members, filter="tar")


def _extract(archive: Path, dest: Path, spec: BuildSpec) -> None:
    dest.mkdir(parents=True, exist_ok=True)
    if spec.platform_id.startswith("linux"):
        _extract_tar(archive, dest)
    else:
        _extract_zip(archive, dest)


async def download_build(spec: BuildSpec, cache_dir: Path, timeout: float | None = None) -> Path:
    """
    Ensures the build described by ``spec`` is present in ``cache_dir``.

    Returns:
        The path to the editor executable.
    """
    install_dir = cache_dir / f"vscode-{spec.platform_id}-{spec.version}{'-insider' if spec.is_insiders else ''}"
    executable = executable_path(install_dir, spec)
    dl_log = log.bind(url=spec.url, install_dir=str(install_dir))
    if executable.exists():
        dl_log.debug("Found cached build")
        return executable

    dl_log.info("Downloading editor build", emoji_key="load")
    cache_dir.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix="extest-download-", dir=cache_dir)
    os.close(fd)
    archive = Path(tmp_name)
    try:
        async with httpx.AsyncClient(timeout=timeout or DEFAULT_TIMEOUT, follow_redirects=True) as client:
            async with client.stream("GET", spec.url) as response:
                response.raise_for_status()
                with archive.open("wb") as out:
                    async for chunk in response.aiter_bytes():
                        out.write(chunk)
        await asyncio.to_thread(_extract, archive, install_dir, spec)
    except httpx.HTTPStatusError as e:
        shutil.rmtree(install_dir, ignore_errors=True)
        raise LauncherError(f"Failed to download {spec.url}: HTTP {e.response.status_code}", details=e) from e
    except httpx.HTTPError as e:
        shutil.rmtree(install_dir, ignore_errors=True)
        raise LauncherError(f"Failed to download {spec.url}: {e}", details=e) from e
    except (OSError, tarfile.TarError, zipfile.BadZipFile) as e:
        shutil.rmtree(install_dir, ignore_errors=True)
        raise LauncherError(f"Failed to extract editor build into {install_dir}: {e}", details=e) from e
    finally:
        archive.unlink(missing_ok=True)

    if not executable.exists():
        raise LauncherError(f"Downloaded build does not contain the expected executable {executable}")
    dl_log.info("Editor build ready", executable=str(executable), emoji_key="success")
    return executable
