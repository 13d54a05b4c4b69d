"""Release feed access and binary installation.

Usage:
    async with BinaryInstaller() as installer:
        handle = await installer.install_latest("/opt/bin/yt-dlp")
"""

from __future__ import annotations

from .client import ReleaseClient, decode_releases
from .installer import BinaryInstaller, ProgressCallback, make_executable

__all__ = [
    "BinaryInstaller",
    "ProgressCallback",
    "ReleaseClient",
    "decode_releases",
    "make_executable",
]
