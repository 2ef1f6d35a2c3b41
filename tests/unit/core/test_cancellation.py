"""Tests for secpipe.core.cancellation."""

from __future__ import annotations

import signal

from secpipe.core.cancellation import CancellationToken, install_signal_handlers


class TestCancellationToken:
    def test_initially_not_cancelled(self) -> None:
        token = CancellationToken()
        assert not token.cancelled
        assert token.reason is None

    def test_first_reason_is_kept(self) -> None:
        token = CancellationToken()
        token.cancel("operator abort")
        token.cancel("second")
        assert token.cancelled
        assert token.reason == "operator abort"

    def test_wait_returns_true_once_cancelled(self) -> None:
        token = CancellationToken()
        assert token.wait(0.01) is False
        token.cancel()
        assert token.wait(0.01) is True


class TestSignalHandlers:
    def test_signal_cancels_and_restore_reinstalls_previous(self) -> None:
        token = CancellationToken()
        previous = signal.getsignal(signal.SIGTERM)
        restore = install_signal_handlers(token, signals=(signal.SIGTERM,))
        try:
            handler = signal.getsignal(signal.SIGTERM)
            handler(signal.SIGTERM, None)  # type: ignore[operator]
            assert token.cancelled
            assert "SIGTERM" in (token.reason or "")
        finally:
            restore()
        assert signal.getsignal(signal.SIGTERM) == previous
