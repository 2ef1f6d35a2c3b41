"""Cooperative cancellation for a pipeline run.

An operator abort (SIGINT/SIGTERM or an API call) sets the token. The step
executor polls it while a process runs and terminates the process; the stage
runner and orchestrator then mark everything remaining as skipped.
"""

from __future__ import annotations

import signal
import threading
from typing import Callable, Dict, Iterable, Optional

from secpipe.core.logging import get_logger

LOGGER = get_logger(__name__)


class CancellationToken:
    """Thread-safe, one-way cancellation flag."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self._reason = reason
            LOGGER.warning(f"Cancellation requested: {reason}")
        self._event.set()

    def wait(self, timeout: float) -> bool:
        """Block up to ``timeout`` seconds; return True if cancelled."""
        return self._event.wait(timeout)


def install_signal_handlers(
    token: CancellationToken,
    signals: Iterable[int] = (signal.SIGINT, signal.SIGTERM),
) -> Callable[[], None]:
    """Route ``signals`` to ``token.cancel``.

    Returns:
        A function restoring the previous handlers.
    """
    previous: Dict[int, object] = {}

    def _handler(signum: int, frame: object) -> None:
        token.cancel(f"received {signal.Signals(signum).name}")

    for signum in signals:
        previous[signum] = signal.signal(signum, _handler)

    def restore() -> None:
        for signum, handler in previous.items():
            signal.signal(signum, handler)  # type: ignore[arg-type]

    return restore
