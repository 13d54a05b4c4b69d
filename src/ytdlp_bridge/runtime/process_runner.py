"""Process runner with subprocess isolation and reliable termination.

ytdlp-bridge runtime module v0.1.0

This module provides:
- Cross-platform subprocess isolation (new session/process group)
- Reliable termination with graceful shutdown (SIGTERM -> timeout -> SIGKILL)
- Run-to-completion with both pipes drained concurrently
- Cancel-safe cleanup using asyncio.shield

Key design points:
- POSIX: start_new_session=True to create new process group
- Windows: CREATE_NEW_PROCESS_GROUP for signal isolation
- Cancellation terminates the process group, not just the main process
- Spawn failures surface as ProcessStartError before anything else runs
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import subprocess
import sys
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from ..errors import ProcessStartError

__all__ = [
    "IS_WINDOWS",
    "ProcessOutput",
    "ProcessRunner",
    "Spawner",
]

logger = logging.getLogger(__name__)

# Platform detection
IS_WINDOWS = sys.platform == "win32"

# Default timeouts
DEFAULT_TERM_TIMEOUT = 2.0  # seconds to wait after SIGTERM
DEFAULT_KILL_TIMEOUT = 1.0  # seconds to wait after SIGKILL

# Signature of asyncio.create_subprocess_exec; injectable for tests
Spawner = Callable[..., Awaitable[asyncio.subprocess.Process]]


@dataclass(frozen=True)
class ProcessOutput:
    """Captured output of a process that ran to completion.

    Attributes:
        argv: Command line that was executed
        stdout: Captured stdout (holds stderr too when merged)
        stderr: Captured stderr (empty when merged into stdout)
        returncode: Exit status
    """

    argv: list[str]
    stdout: bytes
    stderr: bytes
    returncode: int

    @property
    def combined_text(self) -> str:
        """stdout followed by stderr, decoded leniently."""
        return (self.stdout + self.stderr).decode("utf-8", errors="replace")

    @property
    def stdout_text(self) -> str:
        return self.stdout.decode("utf-8", errors="replace")


@dataclass
class ProcessRunner:
    """Cross-platform process runner with isolation and reliable termination.

    This class manages subprocess execution with:
    - Process group/session isolation to prevent SIGINT propagation
    - Graceful termination (SIGTERM -> timeout -> SIGKILL)
    - Concurrent draining of stdout/stderr to prevent deadlocks
    - Cancel-safe cleanup

    Example:
        runner = ProcessRunner()
        output = await runner.run(["yt-dlp", "--version"])
        print(output.stdout_text)
    """

    term_timeout: float = DEFAULT_TERM_TIMEOUT
    kill_timeout: float = DEFAULT_KILL_TIMEOUT
    spawner: Spawner | None = field(default=None, repr=False)

    async def spawn(
        self,
        argv: Sequence[str],
        *,
        stdout: int | None = asyncio.subprocess.PIPE,
        stderr: int | None = asyncio.subprocess.PIPE,
        env: Mapping[str, str] | None = None,
    ) -> asyncio.subprocess.Process:
        """Start a subprocess in an isolated process group/session.

        stdin is always DEVNULL: the child never inherits our stdin.

        Args:
            argv: Command line arguments (first element is the executable)
            stdout: stdout disposition (PIPE, DEVNULL, ...)
            stderr: stderr disposition (PIPE, STDOUT, DEVNULL, ...)
            env: Environment variables (None = inherit parent)

        Returns:
            The started process

        Raises:
            ProcessStartError: If the executable cannot be started
        """
        argv = [str(a) for a in argv]
        spawner = self.spawner or asyncio.create_subprocess_exec
        kwargs = self._build_subprocess_kwargs(env)

        try:
            process = await spawner(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=stdout,
                stderr=stderr,
                **kwargs,
            )
        except OSError as e:
            # FileNotFoundError, PermissionError, exec format errors ...
            logger.debug(f"Failed to start subprocess argv={argv[0]}: {e}")
            raise ProcessStartError(argv, e.strerror or str(e)) from e

        logger.debug(f"Started subprocess pid={process.pid} argv={argv[0]}")
        return process

    async def run(
        self,
        argv: Sequence[str],
        *,
        merge_stderr: bool = True,
        env: Mapping[str, str] | None = None,
    ) -> ProcessOutput:
        """Run a subprocess to completion and capture its output.

        Both pipes are drained concurrently (communicate), so a chatty child
        can never block on a full pipe buffer. If the awaiting task is
        cancelled, the process group is terminated before the cancellation
        propagates.

        Args:
            argv: Command line arguments
            merge_stderr: Redirect stderr into stdout (combined output)
            env: Environment variables (None = inherit parent)

        Returns:
            ProcessOutput with captured bytes and exit status

        Raises:
            ProcessStartError: If the executable cannot be started
        """
        argv = [str(a) for a in argv]
        process = await self.spawn(
            argv,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT if merge_stderr else asyncio.subprocess.PIPE,
            env=env,
        )

        try:
            stdout, stderr = await process.communicate()
        finally:
            # Ensure cleanup with shield to prevent cancel interruption
            await self.safe_cleanup(process)

        returncode = process.returncode if process.returncode is not None else -1
        logger.debug(
            f"Subprocess completed pid={process.pid} returncode={returncode}"
        )
        return ProcessOutput(
            argv=argv,
            stdout=stdout or b"",
            stderr=stderr or b"",
            returncode=returncode,
        )

    def _build_subprocess_kwargs(self, env: Mapping[str, str] | None) -> dict[str, Any]:
        """Build platform-specific subprocess kwargs.

        Args:
            env: Environment override

        Returns:
            Dict of kwargs for asyncio.create_subprocess_exec
        """
        kwargs: dict[str, Any] = {}

        if env is not None:
            kwargs["env"] = dict(env)

        if IS_WINDOWS:
            kwargs["creationflags"] = subprocess.CREATE_NEW_PROCESS_GROUP
        else:
            # POSIX: start_new_session (equivalent to setsid)
            kwargs["start_new_session"] = True

        return kwargs

    async def safe_cleanup(self, process: asyncio.subprocess.Process | None) -> None:
        """Terminate the process if still running, shielded from cancellation.

        Args:
            process: The subprocess to clean up
        """
        if process is None or process.returncode is not None:
            return
        try:
            await asyncio.shield(self.terminate(process))
        except asyncio.CancelledError:
            # If shield itself is cancelled, still try cleanup
            await self.terminate(process)
            raise

    async def terminate(self, process: asyncio.subprocess.Process) -> None:
        """Terminate subprocess gracefully, then forcefully if needed.

        Termination strategy:
        1. Send SIGTERM (or CTRL_BREAK_EVENT on Windows)
        2. Wait up to term_timeout for graceful exit
        3. If still running, send SIGKILL (or kill() on Windows)
        4. Wait up to kill_timeout for forced exit

        Args:
            process: The subprocess to terminate
        """
        if process.returncode is not None:
            return

        pid = process.pid
        logger.debug(f"Terminating subprocess pid={pid}")

        try:
            if IS_WINDOWS:
                self._windows_terminate(process)
            else:
                self._posix_signal(process, signal.SIGTERM)

            try:
                await asyncio.wait_for(process.wait(), timeout=self.term_timeout)
                logger.debug(
                    f"Subprocess terminated gracefully pid={pid} "
                    f"returncode={process.returncode}"
                )
                return
            except asyncio.TimeoutError:
                pass

            logger.debug(f"Force killing subprocess pid={pid}")
            if IS_WINDOWS:
                process.kill()
            else:
                self._posix_signal(process, signal.SIGKILL)

            try:
                await asyncio.wait_for(process.wait(), timeout=self.kill_timeout)
                logger.debug(
                    f"Subprocess killed pid={pid} returncode={process.returncode}"
                )
            except asyncio.TimeoutError:
                logger.warning(f"Subprocess did not exit after kill pid={pid}")

        except ProcessLookupError:
            logger.debug(f"Subprocess already exited pid={pid}")
        except OSError as e:
            logger.warning(f"Error terminating subprocess pid={pid}: {e}")

    def _posix_signal(self, process: asyncio.subprocess.Process, sig: int) -> None:
        """Send a signal to the process group on POSIX systems.

        Args:
            process: The subprocess
            sig: SIGTERM or SIGKILL
        """
        try:
            # Process group ID equals pid due to start_new_session
            pgid = os.getpgid(process.pid)
            os.killpg(pgid, sig)
            logger.debug(f"Sent {signal.Signals(sig).name} to process group pgid={pgid}")
        except ProcessLookupError:
            pass
        except OSError as e:
            logger.debug(f"killpg failed, falling back to direct signal: {e}")
            process.send_signal(sig)

    def _windows_terminate(self, process: asyncio.subprocess.Process) -> None:
        """Send CTRL_BREAK_EVENT on Windows.

        Args:
            process: The subprocess
        """
        try:
            # Works because we used CREATE_NEW_PROCESS_GROUP
            os.kill(process.pid, signal.CTRL_BREAK_EVENT)  # type: ignore[attr-defined]
            logger.debug(f"Sent CTRL_BREAK_EVENT to pid={process.pid}")
        except (ProcessLookupError, OSError) as e:
            logger.debug(f"CTRL_BREAK_EVENT failed, falling back: {e}")
            process.terminate()
