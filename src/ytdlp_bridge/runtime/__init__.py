"""Runtime module for subprocess management and the streaming handshake.

This module provides isolated process execution with reliable termination,
and the stderr start/error handshake used by streaming launches.
"""

from __future__ import annotations

from .handshake import (
    HandshakeClassifier,
    HandshakeOutcome,
    HandshakeVerdict,
    classify_line,
)
from .launcher import MediaStream, StreamLaunch, StreamLauncher
from .process_runner import ProcessOutput, ProcessRunner, Spawner

__all__ = [
    "HandshakeClassifier",
    "HandshakeOutcome",
    "HandshakeVerdict",
    "MediaStream",
    "ProcessOutput",
    "ProcessRunner",
    "Spawner",
    "StreamLaunch",
    "StreamLauncher",
    "classify_line",
]
