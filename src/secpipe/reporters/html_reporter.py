"""HTML reporter: the aggregate report document."""

from __future__ import annotations

from pathlib import Path
from typing import IO, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from secpipe.core.models import AggregateReport, PipelineRun
from secpipe.reporters.base import ReporterPlugin

TEMPLATE_DIR = Path(__file__).parent / "templates"
TEMPLATE_NAME = "report.html.j2"


class HTMLReporter(ReporterPlugin):
    """Renders the aggregate report with a Jinja2 template."""

    def __init__(self, template_dir: Optional[Path] = None) -> None:
        self._env = Environment(
            loader=FileSystemLoader(str(template_dir or TEMPLATE_DIR)),
            autoescape=select_autoescape(enabled_extensions=("html", "j2")),
            trim_blocks=True,
            lstrip_blocks=True,
        )

    @property
    def name(self) -> str:
        return "html"

    @property
    def file_extension(self) -> str:
        return ".html"

    def report(self, aggregate: AggregateReport, run: PipelineRun, output: IO[str]) -> None:
        template = self._env.get_template(TEMPLATE_NAME)
        output.write(
            template.render(
                report=aggregate,
                run=run,
                generated_at=aggregate.generated_at.strftime("%Y-%m-%d %H:%M:%S UTC"),
            )
        )
