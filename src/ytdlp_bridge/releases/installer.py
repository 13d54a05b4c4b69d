"""yt-dlp binary installer.

ytdlp-bridge releases v0.1.0

Downloads a release asset to a local path and adds execute permission for
owner, group and other (existing mode bits are kept). Each failure is an
InstallError whose ``phase`` says where it happened:

    download -> create -> copy -> stat -> chmod
"""

from __future__ import annotations

import asyncio
import logging
import os
import stat
from collections.abc import Callable
from pathlib import Path
from typing import Any

import aiohttp

from ..config import Config
from ..errors import InstallError, NetworkError
from ..types import BinaryHandle
from .client import ReleaseClient

__all__ = [
    "BinaryInstaller",
    "ProgressCallback",
    "make_executable",
]

logger = logging.getLogger(__name__)

# (bytes written so far, total bytes or None when unknown)
ProgressCallback = Callable[[int, int | None], None]

CHUNK_SIZE = 64 * 1024
EXEC_BITS = stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH  # 0o111


def make_executable(path: str | os.PathLike[str]) -> int:
    """OR 0o111 into the file mode, keeping every existing bit.

    Returns:
        The new permission bits

    Raises:
        InstallError: phase "stat" or "chmod"
    """
    try:
        current = os.stat(path).st_mode
    except OSError as e:
        raise InstallError("stat", os.fspath(path), str(e)) from e

    mode = stat.S_IMODE(current) | EXEC_BITS
    try:
        os.chmod(path, mode)
    except OSError as e:
        raise InstallError("chmod", os.fspath(path), str(e)) from e

    logger.debug(f"Set mode {oct(mode)} on {path}")
    return mode


class BinaryInstaller:
    """Install yt-dlp from the release feed.

    Example:
        async with BinaryInstaller() as installer:
            handle = await installer.install_latest("/opt/bin/yt-dlp")
        ytdlp = YtDlp(handle)
    """

    def __init__(
        self,
        config: Config | None = None,
        client: ReleaseClient | None = None,
    ) -> None:
        """Initialize the installer.

        Args:
            config: Configuration (default: the client's, else environment)
            client: Release client; one is created (and closed) if omitted
        """
        self._owns_client = client is None
        self._client = client or ReleaseClient(config)
        self._config = config or self._client.config

    async def close(self) -> None:
        if self._owns_client:
            await self._client.close()

    async def __aenter__(self) -> "BinaryInstaller":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def install_latest(
        self,
        path: str | os.PathLike[str],
        on_progress: ProgressCallback | None = None,
    ) -> BinaryHandle:
        """Install the newest release to path.

        Raises:
            NoReleasesError: If the release listing is empty
            NetworkError / ReleaseDecodeError: If the listing fails
            InstallError: If the download or install fails (phase kept)
        """
        release = await self._client.latest_release()
        logger.info(f"Latest yt-dlp release is {release.tag}")
        try:
            return await self.install_version(path, release.tag, on_progress)
        except InstallError as e:
            raise InstallError(
                e.phase, e.path, f"failed to install latest release {release.tag}: {e.message}"
            ) from e

    async def install_version(
        self,
        path: str | os.PathLike[str],
        version: str,
        on_progress: ProgressCallback | None = None,
    ) -> BinaryHandle:
        """Download the asset of version to path and make it executable.

        The file is created (or truncated) only once the server has answered
        with a success status.

        Raises:
            ValueError: If version is empty
            InstallError: phase download / create / copy / stat / chmod
        """
        if not version:
            raise ValueError("version must not be empty")

        target = Path(path)
        url = self._config.asset_url(version)
        session = await self._client.get_session()

        logger.info(f"Downloading {url} -> {target}")
        try:
            async with session.get(url, timeout=self._client.timeout) as response:
                if response.status >= 400:
                    error = NetworkError(str(response.url), response.reason or "HTTP error", response.status)
                    raise InstallError("download", str(target), str(error)) from error
                await self._write_body(response, target, on_progress)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            error = NetworkError(url, f"Network error: {e!r}")
            raise InstallError("download", str(target), str(error)) from e

        make_executable(target)
        logger.info(f"Installed yt-dlp {version} at {target}")
        return BinaryHandle(target)

    async def _write_body(
        self,
        response: aiohttp.ClientResponse,
        target: Path,
        on_progress: ProgressCallback | None,
    ) -> None:
        """Stream the response body into target (phases create, copy)."""
        try:
            out = open(target, "wb")
        except OSError as e:
            raise InstallError("create", str(target), str(e)) from e

        total = response.content_length
        written = 0
        with out:
            try:
                async for chunk in response.content.iter_chunked(CHUNK_SIZE):
                    out.write(chunk)
                    written += len(chunk)
                    if on_progress is not None:
                        on_progress(written, total)
            except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
                raise InstallError("copy", str(target), repr(e)) from e

        logger.debug(f"Wrote {written} bytes to {target}")
