"""Stream handlers for live step output.

Provides a unified interface for streaming masked step output:
- CLI: print to the console, prefixed with the step name
- Callback: forward events to another system
- Null: no-op
"""

from __future__ import annotations

import sys
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, TextIO


class StreamType(str, Enum):
    """Type of stream output."""

    OUTPUT = "output"
    STATUS = "status"


@dataclass
class StreamEvent:
    """A streaming event from a step execution."""

    step_name: str
    stream_type: StreamType
    content: str
    line_number: Optional[int] = None


class StreamHandler(ABC):
    """Abstract base class for stream handlers.

    Implementations must be thread-safe: output lines are emitted from the
    executor's reader thread.
    """

    @abstractmethod
    def emit(self, event: StreamEvent) -> None:
        """Emit a stream event."""

    @abstractmethod
    def start_step(self, step_name: str) -> None:
        """Signal that a step has started execution."""

    @abstractmethod
    def end_step(self, step_name: str, success: bool) -> None:
        """Signal that a step has finished execution."""


class NullStreamHandler(StreamHandler):
    """No-op handler, used when streaming is not requested."""

    def emit(self, event: StreamEvent) -> None:
        pass

    def start_step(self, step_name: str) -> None:
        pass

    def end_step(self, step_name: str, success: bool) -> None:
        pass


class CLIStreamHandler(StreamHandler):
    """Thread-safe console stream handler."""

    def __init__(self, output: TextIO = sys.stderr, show_output: bool = True):
        """Initialize CLIStreamHandler.

        Args:
            output: Output stream to write to (default: stderr).
            show_output: Whether to show raw step output lines.
        """
        self._output = output
        self._show_output = show_output
        self._lock = threading.Lock()

    def emit(self, event: StreamEvent) -> None:
        if not self._show_output and event.stream_type == StreamType.OUTPUT:
            return

        with self._lock:
            if event.stream_type == StreamType.STATUS:
                self._print(f"[{event.step_name}] {event.content}")
            else:
                self._print(f"  {event.step_name}: {event.content}")

    def start_step(self, step_name: str) -> None:
        with self._lock:
            self._print(f"[{step_name}] Starting...")

    def end_step(self, step_name: str, success: bool) -> None:
        with self._lock:
            self._print(f"[{step_name}] {'Done' if success else 'Failed'}")

    def _print(self, message: str) -> None:
        print(message, file=self._output, flush=True)


class CallbackStreamHandler(StreamHandler):
    """Handler that invokes callbacks for stream events."""

    def __init__(
        self,
        on_event: Optional[Callable[[StreamEvent], None]] = None,
        on_start: Optional[Callable[[str], None]] = None,
        on_end: Optional[Callable[[str, bool], None]] = None,
    ):
        self._on_event = on_event
        self._on_start = on_start
        self._on_end = on_end
        self._lock = threading.Lock()

    def emit(self, event: StreamEvent) -> None:
        if self._on_event:
            with self._lock:
                self._on_event(event)

    def start_step(self, step_name: str) -> None:
        if self._on_start:
            with self._lock:
                self._on_start(step_name)

    def end_step(self, step_name: str, success: bool) -> None:
        if self._on_end:
            with self._lock:
                self._on_end(step_name, success)
