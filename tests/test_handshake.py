"""Handshake classifier tests.

Test coverage:
- Each of the three branches as an independent case
- Noise lines are ignored
- The first resolving line wins
- Line ending trimming
"""

from __future__ import annotations

import pytest

from ytdlp_bridge.errors import HandshakeError
from ytdlp_bridge.runtime.handshake import (
    DOWNLOAD_PREFIX,
    ERROR_PREFIX,
    HandshakeClassifier,
    HandshakeOutcome,
    HandshakeVerdict,
    classify_line,
)


class TestClassifyLine:
    """Single line classification."""

    def test_download_line_starts(self):
        verdict = classify_line("[download]   1.0% of 10.00MiB at 1.00MiB/s")
        assert verdict is not None
        assert verdict.outcome is HandshakeOutcome.STARTED
        assert verdict.message == ""

    def test_bare_download_prefix_starts(self):
        assert classify_line(DOWNLOAD_PREFIX).outcome is HandshakeOutcome.STARTED

    def test_error_line_fails_with_stripped_message(self):
        verdict = classify_line("ERROR: disk full")
        assert verdict is not None
        assert verdict.outcome is HandshakeOutcome.FAILED
        assert verdict.message == "disk full"

    def test_error_prefix_needs_trailing_space(self):
        """'ERROR:' without the space is not the error marker."""
        assert classify_line("ERROR:disk full") is None

    def test_error_message_keeps_inner_text_verbatim(self):
        verdict = classify_line("ERROR: [youtube] abc: Video unavailable. ERROR: twice")
        assert verdict.message == "[youtube] abc: Video unavailable. ERROR: twice"

    def test_empty_error_message(self):
        verdict = classify_line(ERROR_PREFIX)
        assert verdict.outcome is HandshakeOutcome.FAILED
        assert verdict.message == ""

    @pytest.mark.parametrize(
        "line",
        [
            "",
            "warning: x",
            "WARNING: [youtube] falling back",
            "[youtube] abc: Downloading webpage",
            " [download] indented",
            "error: lowercase",
        ],
    )
    def test_noise_lines_do_not_resolve(self, line: str):
        assert classify_line(line) is None

    @pytest.mark.parametrize("ending", ["\n", "\r\n"])
    def test_line_endings_are_trimmed(self, ending: str):
        verdict = classify_line("ERROR: disk full" + ending)
        assert verdict.message == "disk full"


class TestHandshakeVerdict:
    """Verdict helpers."""

    def test_started_is_not_an_error(self):
        verdict = HandshakeVerdict(HandshakeOutcome.STARTED)
        assert verdict.started is True
        assert verdict.to_error() is None

    def test_eof_is_fail_open(self):
        verdict = HandshakeVerdict(HandshakeOutcome.EOF)
        assert verdict.started is True
        assert verdict.to_error() is None

    def test_failed_converts_to_handshake_error(self):
        verdict = HandshakeVerdict(HandshakeOutcome.FAILED, "disk full")
        assert verdict.started is False
        error = verdict.to_error()
        assert isinstance(error, HandshakeError)
        assert error.message == "disk full"
        assert str(error) == "disk full"


class TestHandshakeClassifier:
    """State machine over a sequence of lines."""

    def test_warning_then_download(self):
        classifier = HandshakeClassifier()
        assert classifier.feed("warning: x") is None
        assert not classifier.resolved
        verdict = classifier.feed("[download] 1%")
        assert verdict.outcome is HandshakeOutcome.STARTED
        assert classifier.resolved
        assert classifier.lines_seen == 2

    def test_first_marker_wins(self):
        classifier = HandshakeClassifier()
        classifier.feed("[download] 1%")
        verdict = classifier.feed("ERROR: too late")
        assert verdict.outcome is HandshakeOutcome.STARTED
        assert classifier.lines_seen == 1

    def test_error_is_final(self):
        classifier = HandshakeClassifier()
        classifier.feed("ERROR: first")
        classifier.feed("[download] 1%")
        assert classifier.verdict.outcome is HandshakeOutcome.FAILED
        assert classifier.verdict.message == "first"

    def test_eof_without_markers(self):
        classifier = HandshakeClassifier()
        classifier.feed("warning: only noise")
        verdict = classifier.feed_eof()
        assert verdict.outcome is HandshakeOutcome.EOF

    def test_eof_on_empty_stream(self):
        assert HandshakeClassifier().feed_eof().outcome is HandshakeOutcome.EOF

    def test_eof_after_resolution_keeps_verdict(self):
        classifier = HandshakeClassifier()
        classifier.feed("ERROR: boom")
        assert classifier.feed_eof().outcome is HandshakeOutcome.FAILED
