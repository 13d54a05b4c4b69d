"""ytdlp-bridge - run, stream and install yt-dlp from asyncio code.

环境变量:
    YTB_BINARY_PATH: 默认 yt-dlp 路径
    YTB_HTTP_TIMEOUT: HTTP 超时 (默认 5 秒)
    YTB_HANDSHAKE_TIMEOUT: 流式握手超时 (默认不限时)

用法:
    ytdlp = YtDlp("/usr/local/bin/yt-dlp")
    info = await ytdlp.fetch_metadata("never gonna give you up")
"""

__version__ = "0.1.0"

from .config import Config, get_config, load_config
from .errors import (
    DecodeError,
    EmptyTargetError,
    ExecutionError,
    HandshakeError,
    HandshakeTimeoutError,
    InstallError,
    InvalidBinaryPathError,
    MetadataDecodeError,
    NetworkError,
    NoReleasesError,
    ProcessStartError,
    ReleaseDecodeError,
    YtDlpBridgeError,
)
from .invoker import YtDlp, decode_video_metadata
from .releases import BinaryInstaller, ReleaseClient
from .runtime import HandshakeOutcome, HandshakeVerdict, MediaStream, StreamLaunch
from .types import BinaryHandle, CommandResult, ReleaseDescriptor, VideoMetadata

__all__ = [
    "__version__",
    "BinaryHandle",
    "BinaryInstaller",
    "CommandResult",
    "Config",
    "DecodeError",
    "EmptyTargetError",
    "ExecutionError",
    "HandshakeError",
    "HandshakeOutcome",
    "HandshakeTimeoutError",
    "HandshakeVerdict",
    "InstallError",
    "InvalidBinaryPathError",
    "MediaStream",
    "MetadataDecodeError",
    "NetworkError",
    "NoReleasesError",
    "ProcessStartError",
    "ReleaseClient",
    "ReleaseDecodeError",
    "ReleaseDescriptor",
    "StreamLaunch",
    "VideoMetadata",
    "YtDlp",
    "YtDlpBridgeError",
    "decode_video_metadata",
    "get_config",
    "load_config",
]
