"""ytdlp-bridge 异常类。

ytdlp-bridge v0.1.0

异常分层（调用方可以据此区分失败原因）：
- 输入校验: InvalidBinaryPathError, EmptyTargetError
- 进程启动: ProcessStartError（未安装 / 不可执行）
- 进程执行: ExecutionError（非零退出，附带输出）
- 解码: DecodeError 及其子类
- 网络: NetworkError
- 安装: InstallError（按阶段区分）, NoReleasesError
- 流式握手: HandshakeError, HandshakeTimeoutError
"""

from __future__ import annotations

from collections.abc import Sequence

__all__ = [
    "YtDlpBridgeError",
    "InvalidBinaryPathError",
    "EmptyTargetError",
    "ProcessStartError",
    "ExecutionError",
    "DecodeError",
    "MetadataDecodeError",
    "ReleaseDecodeError",
    "NetworkError",
    "InstallError",
    "NoReleasesError",
    "HandshakeError",
    "HandshakeTimeoutError",
]


class YtDlpBridgeError(Exception):
    """ytdlp-bridge 基础异常。"""
    pass


class InvalidBinaryPathError(YtDlpBridgeError, ValueError):
    """二进制路径为空。"""

    def __init__(self, message: str = "invalid binary path") -> None:
        super().__init__(message)


class EmptyTargetError(YtDlpBridgeError, ValueError):
    """目标（URL 或搜索词）为空，未启动任何进程。"""

    def __init__(self, message: str = "empty target") -> None:
        super().__init__(message)


class ProcessStartError(YtDlpBridgeError):
    """进程无法启动（二进制不存在、无执行权限等）。

    Attributes:
        argv: 尝试执行的命令行
    """

    def __init__(self, argv: Sequence[str], reason: str) -> None:
        self.argv = list(argv)
        self.reason = reason
        program = self.argv[0] if self.argv else "(empty)"
        super().__init__(f"failed to start {program}: {reason}")


class ExecutionError(YtDlpBridgeError):
    """进程以非零状态退出。

    错误消息同时包含退出状态和捕获的输出，诊断信息不会被丢弃。

    Attributes:
        argv: 执行的命令行
        returncode: 退出码
        output: 捕获的输出（stdout + stderr）
    """

    def __init__(self, argv: Sequence[str], returncode: int, output: str) -> None:
        self.argv = list(argv)
        self.returncode = returncode
        self.output = output
        super().__init__(f"yt-dlp error: \nexit status {returncode} | {output}")


class DecodeError(YtDlpBridgeError):
    """工具（或远端）正常返回，但输出无法解析。

    Attributes:
        raw: 原始文本（截断到前 500 个字符）
    """

    def __init__(self, message: str, raw: str = "") -> None:
        self.message = message
        self.raw = raw[:500]
        super().__init__(message)


class MetadataDecodeError(DecodeError):
    """视频元数据 JSON 解析失败。"""

    def __init__(self, message: str, raw: str = "") -> None:
        super().__init__(f"failed to decode video info: {message}", raw)


class ReleaseDecodeError(DecodeError):
    """发布列表 JSON 解析失败。"""

    def __init__(self, message: str, raw: str = "") -> None:
        super().__init__(f"failed to decode release listing: {message}", raw)


class NetworkError(YtDlpBridgeError):
    """HTTP 请求失败（超时、连接错误、非 2xx 状态）。

    Attributes:
        url: 请求 URL
        status_code: HTTP 状态码（连接失败时为 None）
        message: 错误消息
    """

    def __init__(self, url: str, message: str, status_code: int | None = None) -> None:
        self.url = url
        self.message = message
        self.status_code = status_code
        prefix = f"[{status_code}] " if status_code is not None else ""
        super().__init__(f"{prefix}{message} ({url})")


class InstallError(YtDlpBridgeError):
    """安装失败，phase 标明失败阶段。

    阶段取值: download / create / copy / stat / chmod / latest

    Attributes:
        phase: 失败阶段
        path: 目标文件路径
    """

    def __init__(self, phase: str, path: str, message: str) -> None:
        self.phase = phase
        self.path = path
        self.message = message
        super().__init__(f"install failed during {phase} ({path}): {message}")


class NoReleasesError(YtDlpBridgeError):
    """发布列表为空。"""

    def __init__(self, message: str = "no releases found") -> None:
        super().__init__(message)


class HandshakeError(YtDlpBridgeError):
    """流式启动握手失败：yt-dlp 在 stderr 上报告了 ERROR。

    Attributes:
        message: yt-dlp 的原始错误文本（已去掉 "ERROR: " 前缀）
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class HandshakeTimeoutError(HandshakeError):
    """握手在超时时间内没有结果，进程已被终止。"""

    def __init__(self, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(f"no start or error marker within {timeout:g}s")
