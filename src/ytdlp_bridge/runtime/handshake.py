"""Startup handshake classifier for streaming launches.

ytdlp-bridge runtime module v0.1.0

yt-dlp writes human-readable progress to stderr and the payload to stdout
(with ``-o -``). The first ``[download]`` line is the only reliable signal
that payload bytes have begun; an ``ERROR: `` line before that is a failure.
Everything else (warnings, extractor chatter) is passed over.

Outcomes:
- STARTED: a ``[download]`` line was seen
- FAILED: an ``ERROR: `` line was seen, message is the rest of that line
- EOF: stderr closed with neither marker; treated as started (fail-open)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from ..errors import HandshakeError

__all__ = [
    "DOWNLOAD_PREFIX",
    "ERROR_PREFIX",
    "HandshakeClassifier",
    "HandshakeOutcome",
    "HandshakeVerdict",
    "classify_line",
]

DOWNLOAD_PREFIX = "[download]"
ERROR_PREFIX = "ERROR: "


class HandshakeOutcome(str, Enum):
    """Result of a streaming handshake."""

    STARTED = "started"
    FAILED = "failed"
    EOF = "eof"


@dataclass(frozen=True)
class HandshakeVerdict:
    """Resolved handshake.

    Attributes:
        outcome: Which branch resolved the handshake
        message: Error text for FAILED, empty otherwise
    """

    outcome: HandshakeOutcome
    message: str = ""

    @property
    def started(self) -> bool:
        """True for STARTED and for the fail-open EOF branch."""
        return self.outcome is not HandshakeOutcome.FAILED

    def to_error(self) -> HandshakeError | None:
        if self.outcome is HandshakeOutcome.FAILED:
            return HandshakeError(self.message)
        return None


STARTED = HandshakeVerdict(HandshakeOutcome.STARTED)
EOF = HandshakeVerdict(HandshakeOutcome.EOF)


def _strip_line_ending(line: str) -> str:
    # Same trimming as a line scanner: "\n" and a preceding "\r"
    if line.endswith("\n"):
        line = line[:-1]
        if line.endswith("\r"):
            line = line[:-1]
    return line


def classify_line(line: str) -> HandshakeVerdict | None:
    """Classify one stderr line.

    Returns:
        A verdict if the line resolves the handshake, None if it is noise
    """
    line = _strip_line_ending(line)
    if line.startswith(DOWNLOAD_PREFIX):
        return STARTED
    if line.startswith(ERROR_PREFIX):
        return HandshakeVerdict(HandshakeOutcome.FAILED, line[len(ERROR_PREFIX):])
    return None


class HandshakeClassifier:
    """Single-use state machine over stderr lines.

    The first resolving line (or EOF) fixes the verdict; later input is
    ignored.

    Example:
        classifier = HandshakeClassifier()
        for line in lines:
            if classifier.feed(line):
                break
        verdict = classifier.verdict or classifier.feed_eof()
    """

    def __init__(self) -> None:
        self._verdict: HandshakeVerdict | None = None
        self.lines_seen = 0

    @property
    def verdict(self) -> HandshakeVerdict | None:
        return self._verdict

    @property
    def resolved(self) -> bool:
        return self._verdict is not None

    def feed(self, line: str) -> HandshakeVerdict | None:
        """Feed one line; returns the verdict once resolved."""
        if self._verdict is not None:
            return self._verdict
        self.lines_seen += 1
        self._verdict = classify_line(line)
        return self._verdict

    def feed_eof(self) -> HandshakeVerdict:
        """Mark end of stream; resolves to EOF unless already resolved."""
        if self._verdict is None:
            self._verdict = EOF
        return self._verdict
