"""Summary reporter: short plain-text overview of a run."""

from __future__ import annotations

from typing import IO, List

from secpipe.core.models import (
    AggregateReport,
    PipelineRun,
    StageResult,
    StageStatus,
)
from secpipe.reporters.base import ReporterPlugin


class SummaryReporter(ReporterPlugin):
    @property
    def name(self) -> str:
        return "summary"

    @property
    def file_extension(self) -> str:
        return ".txt"

    def report(self, aggregate: AggregateReport, run: PipelineRun, output: IO[str]) -> None:
        lines = self.format_run(run)
        lines.append("")
        lines.append("Artifacts:")
        if not aggregate.entries:
            lines.append("  (none declared)")
        for entry in aggregate.entries:
            target = ", ".join(entry.links) if entry.present else "absent"
            lines.append(f"  {entry.label}: {target}")
        if aggregate.dashboard_url:
            lines.append(f"Dashboard: {aggregate.dashboard_url}")
        output.write("\n".join(lines) + "\n")

    def format_run(self, run: PipelineRun) -> List[str]:
        """Status line plus one line per stage."""
        headline = f"Pipeline run {run.run_id}: {run.status.value.upper()}"
        if run.cancelled:
            headline += " (cancelled)"
        elif run.aborted_stage:
            headline += f" (aborted in '{run.aborted_stage}')"
        lines = [headline]
        for stage in run.stages:
            lines.append(self._format_stage(stage))
        return lines

    @staticmethod
    def _format_stage(stage: StageResult) -> str:
        if stage.status == StageStatus.SUCCESS and stage.has_failed_steps:
            marker = "warn"
        else:
            marker = {
                StageStatus.SUCCESS: "ok",
                StageStatus.FAILED: "failed",
                StageStatus.SKIPPED: "skipped",
            }[stage.status]
        line = f"  [{marker:<7}] {stage.name}"
        if stage.status != StageStatus.SKIPPED:
            line += f" ({stage.duration_seconds:.1f}s)"
        failed = [step.name for step in stage.steps if step.failed]
        if failed:
            line += " - failed steps: " + ", ".join(failed)
        return line
