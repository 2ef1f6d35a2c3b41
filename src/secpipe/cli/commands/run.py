"""Run command implementation.

Wires the pipeline definition into an orchestrator: credential vault, step
executor, stage runner, artifact store, report generator and post-actions.
"""

from __future__ import annotations

import sys
from argparse import Namespace
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:
    from secpipe.config.models import SecPipeConfig

from secpipe.artifacts.collector import ReportGenerator
from secpipe.artifacts.store import LocalArtifactStore
from secpipe.cli.commands import Command
from secpipe.cli.exit_codes import EXIT_INVALID_USAGE
from secpipe.core.cancellation import CancellationToken, install_signal_handlers
from secpipe.core.credentials import CredentialVault
from secpipe.core.errors import ConfigError
from secpipe.core.logging import get_logger, install_mask
from secpipe.core.models import PipelineRun, StepDefinition
from secpipe.core.streaming import CLIStreamHandler
from secpipe.pipeline import (
    CommandPostAction,
    PipelineOrchestrator,
    PostActions,
    StageRunner,
    StepExecutor,
)
from secpipe.reporters.summary_reporter import SummaryReporter

LOGGER = get_logger(__name__)


class RunCommand(Command):
    """Runs the pipeline and prints a summary."""

    @property
    def name(self) -> str:
        """Command identifier."""
        return "run"

    def execute(self, args: Namespace, config: "SecPipeConfig | None" = None) -> int:
        """Execute the run command.

        Args:
            args: Parsed command-line arguments.
            config: Loaded pipeline definition.

        Returns:
            Exit code derived from the run status.
        """
        if config is None:
            LOGGER.error("No pipeline definition loaded")
            return EXIT_INVALID_USAGE

        workspace = Path(args.path).resolve()
        self._apply_overrides(args, config)

        try:
            store = config.credentials.build_store(workspace)
        except ConfigError as e:
            LOGGER.error(str(e))
            return EXIT_INVALID_USAGE

        vault = CredentialVault(store)
        install_mask(vault.mask)

        cancel_token = CancellationToken()
        stream = CLIStreamHandler() if getattr(args, "stream", False) else None
        log_dir = config.output.log_path(workspace)

        executor = StepExecutor(
            vault,
            log_dir,
            workspace=workspace,
            stream_handler=stream,
            cancel_token=cancel_token,
        )
        # Post-actions keep running after a cancellation, so they get their own token.
        post_executor = StepExecutor(vault, log_dir, workspace=workspace, stream_handler=stream)

        artifact_store = LocalArtifactStore(workspace, config.output.archive_path(workspace))
        report_generator: Optional[ReportGenerator] = None
        if config.output.formats:
            report_generator = ReportGenerator(
                output_dir=config.output.output_path(workspace),
                store=artifact_store,
                title=config.title,
                dashboard_url=config.dashboard_url,
                report_name=config.output.report,
                formats=config.output.formats,
            )

        orchestrator = PipelineOrchestrator(
            StageRunner(executor, artifact_store),
            config.build_environment(store),
            post_actions=PostActions(
                always=self._post_actions(config.post.always, post_executor, "always"),
                on_failure=self._post_actions(config.post.on_failure, post_executor, "on_failure"),
            ),
            report_generator=report_generator,
            required_env=config.required_env,
        )

        restore_signals = install_signal_handlers(cancel_token)
        try:
            run = orchestrator.execute(config.stages)
        except ConfigError as e:
            LOGGER.error(str(e))
            return EXIT_INVALID_USAGE
        finally:
            restore_signals()

        self._print_summary(run)
        return run.exit_code

    @staticmethod
    def _apply_overrides(args: Namespace, config: "SecPipeConfig") -> None:
        if getattr(args, "no_report", False):
            config.output.formats = []
        elif getattr(args, "formats", None):
            config.output.formats = list(dict.fromkeys(args.formats))
        if getattr(args, "dashboard_url", None):
            config.dashboard_url = args.dashboard_url

    @staticmethod
    def _post_actions(
        steps: List[StepDefinition], executor: StepExecutor, kind: str
    ) -> List[CommandPostAction]:
        return [CommandPostAction(step, executor, kind) for step in steps]

    @staticmethod
    def _print_summary(run: PipelineRun) -> None:
        for line in SummaryReporter().format_run(run):
            print(line)
        if run.report is not None:
            if run.report.absent_labels:
                print("Absent artifacts: " + ", ".join(run.report.absent_labels))
            if run.report.output_path is not None:
                print(f"Report: {run.report.output_path}")
        sys.stdout.flush()
