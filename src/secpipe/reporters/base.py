"""Base class for reporter plugins."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import IO

from secpipe.core.models import AggregateReport, PipelineRun


class ReporterPlugin(ABC):
    """Base class for all reporter plugins.

    Each reporter renders a finished run and its aggregate report to one
    output format.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Plugin identifier (e.g., 'html', 'json')."""

    @property
    @abstractmethod
    def file_extension(self) -> str:
        """Extension used when the report is written to a file."""

    @abstractmethod
    def report(self, aggregate: AggregateReport, run: PipelineRun, output: IO[str]) -> None:
        """Render ``aggregate`` and ``run`` to ``output``."""
