"""JSON reporter: machine-readable run record."""

from __future__ import annotations

import json
from typing import IO

from secpipe.core.models import AggregateReport, PipelineRun
from secpipe.reporters.base import ReporterPlugin


class JSONReporter(ReporterPlugin):
    @property
    def name(self) -> str:
        return "json"

    @property
    def file_extension(self) -> str:
        return ".json"

    def report(self, aggregate: AggregateReport, run: PipelineRun, output: IO[str]) -> None:
        data = run.to_dict()
        data["title"] = aggregate.title
        data["generated_at"] = aggregate.generated_at.isoformat()
        data["dashboard_url"] = aggregate.dashboard_url
        data["entries"] = [
            {
                "label": entry.label,
                "stage": entry.stage,
                "present": entry.present,
                "links": list(entry.links),
            }
            for entry in aggregate.entries
        ]
        json.dump(data, output, indent=2)
        output.write("\n")
