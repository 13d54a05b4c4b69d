"""ytdlp-bridge 环境变量配置管理。

环境变量:
    YTB_BINARY_PATH: yt-dlp 可执行文件路径
        - 默认 "yt-dlp"（从 PATH 查找）

    YTB_HTTP_TIMEOUT: 所有 HTTP 请求的总超时（秒）
        - 默认 5.0，限制在 0.1-300 秒范围

    YTB_HANDSHAKE_TIMEOUT: 流式启动握手的默认超时（秒）
        - 空/未设置 = 不限时（一直等待 [download] / ERROR: / EOF）

    YTB_RELEASES_API_URL: 发布列表 API 根地址
        - 默认 https://api.github.com

    YTB_DOWNLOAD_URL: 发布资源下载根地址
        - 默认 https://github.com

    YTB_REPOSITORY: 发布仓库 (owner/name)
        - 默认 yt-dlp/yt-dlp

    YTB_ASSET_NAME: 下载的资源文件名
        - 默认 yt-dlp

    YTB_LOG_DEBUG: 日志调试模式
        - true/1/yes = 开启 (日志输出到临时文件)
        - false/0/no = 关闭 (默认，日志输出到 stderr)
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

__all__ = [
    "Config",
    "DEFAULT_HTTP_TIMEOUT",
    "load_config",
    "get_config",
    "reload_config",
]

DEFAULT_BINARY_PATH = "yt-dlp"
DEFAULT_HTTP_TIMEOUT = 5.0
DEFAULT_RELEASES_API_URL = "https://api.github.com"
DEFAULT_DOWNLOAD_URL = "https://github.com"
DEFAULT_REPOSITORY = "yt-dlp/yt-dlp"
DEFAULT_ASSET_NAME = "yt-dlp"


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """解析布尔值环境变量。"""
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def _parse_http_timeout(value: str | None) -> float:
    """解析 HTTP 超时环境变量。"""
    if not value:
        return DEFAULT_HTTP_TIMEOUT
    try:
        timeout = float(value)
        return max(0.1, min(timeout, 300.0))  # 限制在 0.1-300 秒范围
    except ValueError:
        return DEFAULT_HTTP_TIMEOUT


def _parse_optional_timeout(value: str | None) -> float | None:
    """解析可选超时，空值或非正数表示不限时。"""
    if not value or not value.strip():
        return None
    try:
        timeout = float(value)
    except ValueError:
        return None
    return timeout if timeout > 0 else None


def _strip_url(value: str | None, default: str) -> str:
    """去掉 URL 末尾的斜杠，空值回退到默认值。"""
    if not value or not value.strip():
        return default
    return value.strip().rstrip("/")


@dataclass
class Config:
    """ytdlp-bridge 配置。

    Attributes:
        binary_path: 默认的 yt-dlp 路径
        http_timeout: HTTP 请求总超时（秒）
        handshake_timeout: 流式握手默认超时（None = 不限时）
        releases_api_url: 发布列表 API 根地址
        download_url: 资源下载根地址
        repository: 发布仓库 owner/name
        asset_name: 资源文件名
        log_debug: 日志调试模式（输出到临时文件）
        log_file: 日志文件路径（当 log_debug=True 时自动设置）
    """

    binary_path: str = DEFAULT_BINARY_PATH
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    handshake_timeout: float | None = None
    releases_api_url: str = DEFAULT_RELEASES_API_URL
    download_url: str = DEFAULT_DOWNLOAD_URL
    repository: str = DEFAULT_REPOSITORY
    asset_name: str = DEFAULT_ASSET_NAME
    log_debug: bool = False
    log_file: str | None = None

    @property
    def releases_endpoint(self) -> str:
        """发布列表完整地址。"""
        return f"{self.releases_api_url}/repos/{self.repository}/releases"

    def asset_url(self, version: str) -> str:
        """指定版本的资源下载地址。"""
        return (
            f"{self.download_url}/{self.repository}"
            f"/releases/download/{version}/{self.asset_name}"
        )


def _generate_log_file_path() -> str:
    """生成日志文件路径。

    Returns:
        临时目录下的日志文件绝对路径
    """
    log_dir = Path(tempfile.gettempdir()) / "ytdlp-bridge"
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = log_dir / f"ytb_debug_{timestamp}.log"

    return str(log_file.resolve())


def load_config() -> Config:
    """从环境变量加载配置。"""
    log_debug = _parse_bool(os.environ.get("YTB_LOG_DEBUG"), default=False)
    log_file = _generate_log_file_path() if log_debug else None

    return Config(
        binary_path=os.environ.get("YTB_BINARY_PATH", "").strip() or DEFAULT_BINARY_PATH,
        http_timeout=_parse_http_timeout(os.environ.get("YTB_HTTP_TIMEOUT")),
        handshake_timeout=_parse_optional_timeout(os.environ.get("YTB_HANDSHAKE_TIMEOUT")),
        releases_api_url=_strip_url(
            os.environ.get("YTB_RELEASES_API_URL"), DEFAULT_RELEASES_API_URL
        ),
        download_url=_strip_url(os.environ.get("YTB_DOWNLOAD_URL"), DEFAULT_DOWNLOAD_URL),
        repository=os.environ.get("YTB_REPOSITORY", "").strip().strip("/") or DEFAULT_REPOSITORY,
        asset_name=os.environ.get("YTB_ASSET_NAME", "").strip() or DEFAULT_ASSET_NAME,
        log_debug=log_debug,
        log_file=log_file,
    )


# 全局配置实例（延迟加载）
_config: Config | None = None


def get_config() -> Config:
    """获取全局配置实例。"""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config() -> Config:
    """重新加载配置（用于测试）。"""
    global _config
    _config = load_config()
    return _config
