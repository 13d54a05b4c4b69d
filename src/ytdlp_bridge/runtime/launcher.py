"""Streaming launcher: start yt-dlp writing to stdout and wait for the handshake.

ytdlp-bridge runtime module v0.1.0

One launch runs exactly two background tasks:
- reaper: awaits process exit and records the exit status
- handshake reader: reads stderr line by line, resolves a one-shot future
  with the verdict, then keeps draining stderr to EOF

The caller awaits only that future. The stdout stream is handed back after
the verdict exists (verdict first, bytes second), and it is handed back on
the failure branch too: callers check ``StreamLaunch.error``, not the stream.

A merged launch (open_merged) sends stderr into stdout and runs only the
reaper; there is no handshake and the stream is returned right after spawn.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable, Sequence
from dataclasses import dataclass, field

import anyio

from ..errors import HandshakeError, HandshakeTimeoutError, ProcessStartError
from .handshake import HandshakeClassifier, HandshakeVerdict
from .process_runner import ProcessRunner

__all__ = [
    "MediaStream",
    "StderrCallback",
    "StreamLaunch",
    "StreamLauncher",
]

logger = logging.getLogger(__name__)

# Called with each decoded stderr line (line ending stripped)
StderrCallback = Callable[[str], None]

DEFAULT_CHUNK_SIZE = 64 * 1024


class MediaStream:
    """Live view of the payload a streaming yt-dlp writes to stdout.

    Read it to EOF (or close it): stdout is owned by the caller, and a child
    blocked on a full stdout pipe never exits.

    Example:
        async with launch.stream as stream:
            async for chunk in stream:
                sink.write(chunk)
        print(stream.returncode)
    """

    def __init__(
        self,
        process: asyncio.subprocess.Process,
        reader: asyncio.StreamReader,
        runner: ProcessRunner,
        reaper: asyncio.Task[int],
        stderr_task: asyncio.Task[None] | None = None,
    ) -> None:
        self._process = process
        self._reader = reader
        self._runner = runner
        self._reaper = reaper
        self._stderr_task = stderr_task

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def returncode(self) -> int | None:
        """Exit status, None while the process is running."""
        return self._process.returncode

    async def read(self, n: int = DEFAULT_CHUNK_SIZE) -> bytes:
        """Read up to n bytes; b"" at end of stream."""
        return await self._reader.read(n)

    async def read_all(self) -> bytes:
        """Read until end of stream."""
        return await self._reader.read()

    async def __aiter__(self) -> AsyncIterator[bytes]:
        while True:
            chunk = await self._reader.read(DEFAULT_CHUNK_SIZE)
            if not chunk:
                break
            yield chunk

    async def wait(self) -> int:
        """Wait for the process to exit and stderr to be drained.

        Read stdout to EOF first: a child blocked writing stdout never exits.
        """
        returncode = await self._reaper
        if self._stderr_task is not None:
            await self._stderr_task
        return returncode

    async def close(self) -> None:
        """Terminate the process group if still running and reap it.

        Unread stdout is discarded so the pipe can reach EOF.
        """
        discard = asyncio.create_task(self._discard_stdout())
        try:
            await self._runner.safe_cleanup(self._process)
        finally:
            tasks = [discard, self._reaper]
            if self._stderr_task is not None:
                tasks.append(self._stderr_task)
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _discard_stdout(self) -> None:
        while await self._reader.read(DEFAULT_CHUNK_SIZE):
            pass

    async def __aenter__(self) -> "MediaStream":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()


@dataclass
class StreamLaunch:
    """Outcome of a streaming launch.

    Attributes:
        stream: Live stdout stream (present on every branch)
        verdict: How the handshake resolved
        argv: Command line that was launched
    """

    stream: MediaStream
    verdict: HandshakeVerdict
    argv: list[str] = field(default_factory=list)

    @property
    def error(self) -> HandshakeError | None:
        return self.verdict.to_error()

    @property
    def ok(self) -> bool:
        return self.verdict.started

    def raise_for_error(self) -> MediaStream:
        """Raise HandshakeError on the failure branch, else return the stream."""
        error = self.error
        if error is not None:
            raise error
        return self.stream


class StreamLauncher:
    """Launch a process and block on its stderr start/error handshake."""

    def __init__(self, runner: ProcessRunner | None = None) -> None:
        self._runner = runner or ProcessRunner()

    async def launch(
        self,
        argv: Sequence[str],
        *,
        on_stderr: StderrCallback | None = None,
        handshake_timeout: float | None = None,
    ) -> StreamLaunch:
        """Start the process and return once the handshake has resolved.

        Args:
            argv: Full command line, output-to-stdout flags included
            on_stderr: Optional callback for every stderr line
            handshake_timeout: Seconds to wait for a verdict (None = forever)

        Returns:
            StreamLaunch with the live stdout stream and the verdict

        Raises:
            ProcessStartError: If the process cannot be started; no
                background task exists at that point
            HandshakeTimeoutError: If handshake_timeout expired; the process
                has been terminated
        """
        argv = [str(a) for a in argv]
        process = await self._runner.spawn(
            argv,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, stderr = await self._require_pipes(argv, process, stderr=True)

        loop = asyncio.get_running_loop()
        verdict_future: asyncio.Future[HandshakeVerdict] = loop.create_future()

        reaper = asyncio.create_task(self._reap(process))
        stderr_task = asyncio.create_task(
            self._read_handshake(process, stderr, verdict_future, on_stderr)
        )
        stream = MediaStream(process, stdout, self._runner, reaper, stderr_task)

        try:
            with anyio.fail_after(handshake_timeout):
                verdict = await asyncio.shield(verdict_future)
        except TimeoutError:
            logger.warning(
                f"No handshake from pid={process.pid} within {handshake_timeout}s, terminating"
            )
            await stream.close()
            raise HandshakeTimeoutError(handshake_timeout or 0.0) from None
        except BaseException:
            await stream.close()
            raise

        logger.debug(
            f"Handshake resolved pid={process.pid} outcome={verdict.outcome.value}"
        )
        return StreamLaunch(stream=stream, verdict=verdict, argv=argv)

    async def open_merged(self, argv: Sequence[str]) -> MediaStream:
        """Start the process with stderr merged into stdout, no handshake.

        The stream is returned as soon as the process is running; only the
        reaper runs in the background.

        Raises:
            ProcessStartError: If the process cannot be started
        """
        argv = [str(a) for a in argv]
        process = await self._runner.spawn(
            argv,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )
        stdout, _ = await self._require_pipes(argv, process, stderr=False)
        reaper = asyncio.create_task(self._reap(process))
        return MediaStream(process, stdout, self._runner, reaper)

    async def _require_pipes(
        self,
        argv: list[str],
        process: asyncio.subprocess.Process,
        *,
        stderr: bool,
    ) -> tuple[asyncio.StreamReader, asyncio.StreamReader | None]:
        """Return the pipe readers, or terminate the process if one is missing."""
        if process.stdout is None or (stderr and process.stderr is None):
            await self._runner.safe_cleanup(process)
            raise ProcessStartError(argv, "output pipes were not created")
        return process.stdout, process.stderr

    async def _reap(self, process: asyncio.subprocess.Process) -> int:
        """Await process exit."""
        returncode = await process.wait()
        logger.debug(f"Subprocess exited pid={process.pid} returncode={returncode}")
        return returncode

    async def _read_handshake(
        self,
        process: asyncio.subprocess.Process,
        stderr: asyncio.StreamReader,
        verdict_future: asyncio.Future[HandshakeVerdict],
        on_stderr: StderrCallback | None,
    ) -> None:
        """Classify stderr until resolved, then drain it to EOF.

        Draining continues in every branch so the child never blocks on a
        full stderr pipe after the caller has been released.
        """
        classifier = HandshakeClassifier()

        try:
            while True:
                try:
                    raw = await stderr.readline()
                except ValueError:
                    # Line longer than the stream limit; the buffer is discarded
                    logger.debug(f"Skipped overlong stderr line pid={process.pid}")
                    continue
                if not raw:
                    break

                line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
                if on_stderr is not None:
                    try:
                        on_stderr(line)
                    except Exception:
                        # Keep draining; a broken callback must not stall the child
                        logger.exception(f"on_stderr callback failed pid={process.pid}")
                        on_stderr = None

                if not classifier.resolved:
                    verdict = classifier.feed(line)
                    if verdict is not None:
                        _resolve(verdict_future, verdict)

            _resolve(verdict_future, classifier.feed_eof())
        except Exception as e:
            if not verdict_future.done():
                verdict_future.set_exception(e)
            else:
                logger.warning(f"stderr reader failed after handshake pid={process.pid}: {e}")


def _resolve(
    future: asyncio.Future[HandshakeVerdict],
    verdict: HandshakeVerdict,
) -> None:
    if not future.done():
        future.set_result(verdict)
