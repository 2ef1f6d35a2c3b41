"""Tests for secpipe.core.streaming."""

from __future__ import annotations

import io

from secpipe.core.streaming import CLIStreamHandler, StreamEvent, StreamType


class TestCLIStreamHandler:
    """Tests for CLIStreamHandler."""

    def test_output_and_status_lines(self) -> None:
        out = io.StringIO()
        handler = CLIStreamHandler(output=out)
        handler.start_step("trivy")
        handler.emit(StreamEvent("trivy", StreamType.OUTPUT, "scanning image", 1))
        handler.emit(StreamEvent("trivy", StreamType.STATUS, "Timed out after 5s, stopping"))
        handler.end_step("trivy", False)

        assert out.getvalue().splitlines() == [
            "[trivy] Starting...",
            "  trivy: scanning image",
            "[trivy] Timed out after 5s, stopping",
            "[trivy] Failed",
        ]

    def test_hide_output_keeps_status(self) -> None:
        out = io.StringIO()
        handler = CLIStreamHandler(output=out, show_output=False)
        handler.emit(StreamEvent("zap", StreamType.OUTPUT, "raw line"))
        handler.emit(StreamEvent("zap", StreamType.STATUS, "Cancelled, stopping"))
        assert out.getvalue() == "[zap] Cancelled, stopping\n"
