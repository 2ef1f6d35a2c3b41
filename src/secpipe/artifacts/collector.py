"""Aggregate report generation.

After the last stage, every artifact declared by a stage post-action becomes
one entry of the aggregate report, in the order the stages recorded them.
Missing artifacts appear as absent entries; they never fail the run.
"""

from __future__ import annotations

import os
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from secpipe.artifacts.store import ArtifactStore
from secpipe.core.logging import get_logger
from secpipe.core.models import AggregateReport, Artifact, PipelineRun, ReportEntry
from secpipe.reporters import get_reporter_plugin
from secpipe.reporters.base import ReporterPlugin

LOGGER = get_logger(__name__)

DEFAULT_TITLE = "Security Pipeline Report"
DEFAULT_REPORT_NAME = "security-report"


class ReportGenerator:
    """Builds the AggregateReport for a finished run and writes it to disk.

    The first entry of ``formats`` is the main report document: it is the one
    referenced by ``AggregateReport.output_path`` and the one archived through
    the artifact store, exactly once per run.
    """

    def __init__(
        self,
        output_dir: Path,
        store: Optional[ArtifactStore] = None,
        title: str = DEFAULT_TITLE,
        dashboard_url: Optional[str] = None,
        report_name: str = DEFAULT_REPORT_NAME,
        formats: Sequence[str] = ("html",),
    ) -> None:
        self._output_dir = Path(output_dir)
        self._store = store
        self._title = title
        self._dashboard_url = dashboard_url
        self._report_name = report_name
        self._reporters = self._load_reporters(formats)

    @staticmethod
    def _load_reporters(formats: Sequence[str]) -> List[ReporterPlugin]:
        reporters: List[ReporterPlugin] = []
        for name in formats:
            reporter = get_reporter_plugin(name)
            if reporter is None:
                LOGGER.warning(f"Unknown report format '{name}', skipping")
                continue
            reporters.append(reporter)
        return reporters

    def collect(self, run: PipelineRun) -> Tuple[ReportEntry, ...]:
        """One entry per declared artifact, links relative to the report directory."""
        return tuple(self._entry(artifact) for artifact in run.artifacts)

    def _entry(self, artifact: Artifact) -> ReportEntry:
        links = tuple(self._link(path) for path in artifact.files)
        if not links:
            LOGGER.info(f"Artifact '{artifact.label}' is absent from the report")
        return ReportEntry(label=artifact.label, stage=artifact.stage, links=links)

    def _link(self, path: Path) -> str:
        try:
            return Path(os.path.relpath(path, self._output_dir)).as_posix()
        except ValueError:
            # Different drive on Windows.
            return Path(path).as_posix()

    def generate(self, run: PipelineRun) -> AggregateReport:
        """Build, write and archive the aggregate report for ``run``."""
        entries = self.collect(run)
        main_path = None
        if self._reporters:
            main_path = self._output_dir / f"{self._report_name}{self._reporters[0].file_extension}"

        aggregate = AggregateReport(
            title=self._title,
            run_id=run.run_id,
            status=run.status,
            generated_at=datetime.now(timezone.utc),
            entries=entries,
            dashboard_url=self._dashboard_url,
            output_path=main_path,
        )

        self._output_dir.mkdir(parents=True, exist_ok=True)
        for reporter in self._reporters:
            path = self._output_dir / f"{self._report_name}{reporter.file_extension}"
            with open(path, "w", encoding="utf-8") as f:
                reporter.report(aggregate, run, f)
            LOGGER.info(f"Wrote {reporter.name} report to {path}")

        if main_path is not None and self._store is not None:
            self._store.archive(str(main_path.resolve()), allow_empty_if_missing=True)

        if aggregate.absent_labels:
            LOGGER.warning(
                "Report entries without artifacts: " + ", ".join(aggregate.absent_labels)
            )
        return aggregate
