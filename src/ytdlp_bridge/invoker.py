"""yt-dlp invoker.

ytdlp-bridge v0.1.0

Binds a BinaryHandle and exposes the ways of running yt-dlp:

- execute(): run to completion, raise ExecutionError (with output) on failure
- execute_capture(): run to completion, always return the raw output
- fetch_metadata(): single search result as VideoMetadata
- stream(): payload on stdout, returned after the stderr handshake
- execute_stream(): merged stdout + stderr as a live stream, no handshake

Usage:
    ytdlp = YtDlp("/usr/local/bin/yt-dlp")
    await ytdlp.execute("https://example.com/watch?v=x", "-f", "bestaudio")

    launch = await ytdlp.stream("https://example.com/watch?v=x")
    stream = launch.raise_for_error()
    payload = await stream.read_all()
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence

from pydantic import ValidationError

from .config import Config, get_config
from .errors import EmptyTargetError, ExecutionError, MetadataDecodeError
from .runtime.launcher import MediaStream, StderrCallback, StreamLaunch, StreamLauncher
from .runtime.process_runner import ProcessRunner, Spawner
from .types import BinaryHandle, BinaryLike, CommandResult, VideoMetadata

__all__ = [
    "METADATA_TEMPLATE",
    "STREAM_FLAGS",
    "YtDlp",
    "decode_video_metadata",
]

logger = logging.getLogger(__name__)

# Output template printing one compact JSON object with four fields
METADATA_TEMPLATE = "%(.{id,title,thumbnail,duration})#j"
SEARCH_PREFIX = "ytsearch:"

# Payload to stdout, one progress line per update on stderr
STREAM_FLAGS = ("-o", "-", "--newline")


def decode_video_metadata(stdout: str) -> VideoMetadata:
    """Decode the first JSON value of stdout into VideoMetadata.

    Raises:
        MetadataDecodeError: If stdout holds no JSON object or a field has the
            wrong type (missing and null fields take zero values)
    """
    text = stdout.lstrip()
    try:
        obj, _ = json.JSONDecoder().raw_decode(text)
    except json.JSONDecodeError as e:
        raise MetadataDecodeError(str(e), stdout) from e

    if not isinstance(obj, dict):
        raise MetadataDecodeError(
            f"expected a JSON object, got {type(obj).__name__}", stdout
        )

    try:
        return VideoMetadata.model_validate(obj)
    except ValidationError as e:
        raise MetadataDecodeError(str(e), stdout) from e


def _require_target(target: str) -> None:
    if not target:
        raise EmptyTargetError()


class YtDlp:
    """A yt-dlp binary and the ways of running it.

    Args:
        binary: Binary path or handle (default: config binary_path)
        config: Configuration (default: environment via get_config())
        runner: Process runner to spawn through
        spawner: Replacement for asyncio.create_subprocess_exec, used when
            no runner is given

    Raises:
        InvalidBinaryPathError: If the binary path is empty
    """

    def __init__(
        self,
        binary: BinaryLike | None = None,
        *,
        config: Config | None = None,
        runner: ProcessRunner | None = None,
        spawner: Spawner | None = None,
    ) -> None:
        self._config = config or get_config()
        self.binary = BinaryHandle.coerce(
            binary if binary is not None else self._config.binary_path
        )
        self._runner = runner or ProcessRunner(spawner=spawner)
        self._launcher = StreamLauncher(self._runner)

    def __repr__(self) -> str:
        return f"YtDlp(binary={str(self.binary)!r})"

    # =========================================================================
    # Argument vectors
    # =========================================================================

    def build_args(self, target: str, args: Sequence[str] = ()) -> list[str]:
        """[target, *args] after validating target."""
        _require_target(target)
        return [target, *args]

    def build_metadata_args(self, query: str) -> list[str]:
        _require_target(query)
        return [SEARCH_PREFIX + query, "-s", "-O", METADATA_TEMPLATE]

    def build_stream_args(self, target: str, args: Sequence[str] = ()) -> list[str]:
        return [*self.build_args(target, args), *STREAM_FLAGS]

    def _argv(self, args: Sequence[str]) -> list[str]:
        return [str(self.binary.path), *args]

    # =========================================================================
    # Run to completion
    # =========================================================================

    async def execute(self, target: str, *args: str) -> None:
        """Run yt-dlp on target and wait for it to exit.

        Raises:
            EmptyTargetError: If target is empty (nothing is spawned)
            ProcessStartError: If the binary cannot be started
            ExecutionError: On non-zero exit, carrying the combined output
        """
        result = await self.execute_capture(target, *args)
        if not result.ok:
            logger.debug(f"yt-dlp exited with {result.returncode}: {result.output[:200]}")
        result.raise_for_status()

    async def execute_capture(self, target: str, *args: str) -> CommandResult:
        """Run yt-dlp on target and return its combined output.

        A non-zero exit is not raised; check ``result.ok`` or call
        ``result.raise_for_status()``.

        Raises:
            EmptyTargetError: If target is empty (nothing is spawned)
            ProcessStartError: If the binary cannot be started
        """
        argv = self._argv(self.build_args(target, args))
        output = await self._runner.run(argv, merge_stderr=True)
        return CommandResult(
            argv=output.argv,
            output=output.combined_text,
            returncode=output.returncode,
        )

    async def fetch_metadata(self, query: str) -> VideoMetadata:
        """Metadata of the first search result for query.

        Raises:
            EmptyTargetError: If query is empty (nothing is spawned)
            ProcessStartError: If the binary cannot be started
            ExecutionError: On non-zero exit
            MetadataDecodeError: If yt-dlp ran but its output is not the
                expected JSON object
        """
        argv = self._argv(self.build_metadata_args(query))
        output = await self._runner.run(argv, merge_stderr=False)
        if output.returncode != 0:
            raise ExecutionError(argv, output.returncode, output.combined_text)
        return decode_video_metadata(output.stdout_text)

    # =========================================================================
    # Streaming
    # =========================================================================

    async def execute_stream(self, target: str, *args: str) -> MediaStream:
        """Start yt-dlp and return its merged stdout + stderr as a live stream.

        No handshake is performed and no flags are added; the stream ends
        when the process exits. Read it to EOF or close it.

        Raises:
            EmptyTargetError: If target is empty (nothing is spawned)
            ProcessStartError: If the binary cannot be started
        """
        argv = self._argv(self.build_args(target, args))
        return await self._launcher.open_merged(argv)

    async def stream(
        self,
        target: str,
        *args: str,
        on_stderr: StderrCallback | None = None,
        handshake_timeout: float | None = None,
    ) -> StreamLaunch:
        """Start yt-dlp writing the payload to stdout.

        Returns once stderr shows ``[download]`` (started), ``ERROR: ``
        (failed) or closes (fail-open, started). On failure the stream is
        still returned; check ``launch.error`` or call
        ``launch.raise_for_error()``.

        Args:
            target: URL or search query
            *args: Extra yt-dlp arguments, passed through as-is
            on_stderr: Callback for every stderr line
            handshake_timeout: Watchdog in seconds (None = config default)

        Raises:
            EmptyTargetError: If target is empty (nothing is spawned)
            ProcessStartError: If the binary cannot be started
            HandshakeTimeoutError: If the watchdog expired
        """
        argv = self._argv(self.build_stream_args(target, args))
        timeout = (
            handshake_timeout if handshake_timeout is not None
            else self._config.handshake_timeout
        )
        return await self._launcher.launch(
            argv,
            on_stderr=on_stderr,
            handshake_timeout=timeout,
        )
