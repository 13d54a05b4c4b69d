"""Pytest 配置和 fixtures。"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

# 项目根目录
PROJECT_ROOT = Path(__file__).parent.parent

# 添加 src 目录到 Python 路径
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from ytdlp_bridge.config import Config  # noqa: E402
from ytdlp_bridge.runtime.process_runner import IS_WINDOWS  # noqa: E402

# 假 yt-dlp 脚本
FAKE_YTDLP = Path(__file__).parent / "fixtures" / "fake_ytdlp.py"


@pytest.fixture
def project_root() -> Path:
    """项目根目录。"""
    return PROJECT_ROOT


@pytest.fixture
def config() -> Config:
    """不读取环境变量的默认配置。"""
    return Config()


@pytest.fixture
def fake_ytdlp(tmp_path: Path) -> Path:
    """可直接执行的假 yt-dlp（shell 包装 + 当前解释器）。"""
    if IS_WINDOWS:
        pytest.skip("POSIX-specific fixture")
    shim = tmp_path / "yt-dlp"
    shim.write_text(
        "#!/bin/sh\n"
        f'exec "{sys.executable}" "{FAKE_YTDLP}" "$@"\n',
        encoding="utf-8",
    )
    shim.chmod(0o755)
    return shim
