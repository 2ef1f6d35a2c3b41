"""Pipeline orchestrator: runs stages strictly in order and decides run status."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable, List, Optional, Sequence

from secpipe.core.environment import EnvironmentScope
from secpipe.core.errors import ConfigError, StageAbortedError, StepExecutionError
from secpipe.core.logging import get_logger
from secpipe.core.models import (
    PipelineRun,
    RunStatus,
    StageDefinition,
    StageResult,
    StageStatus,
    StepDefinition,
    StepResult,
)
from secpipe.pipeline.stage import StageRunner

if TYPE_CHECKING:
    from secpipe.artifacts.collector import ReportGenerator
    from secpipe.pipeline.executor import StepExecutor

LOGGER = get_logger(__name__)

PostAction = Callable[[PipelineRun], None]

POST_ACTION_LOG_PREFIX = "post-"


@dataclass
class PostActions:
    """Pipeline-level post-actions, each invoked exactly once per run."""

    always: List[PostAction] = field(default_factory=list)
    on_failure: List[PostAction] = field(default_factory=list)


class CommandPostAction:
    """Runs a command as a pipeline post-action.

    The command sees the run's pipeline scope plus ``SECPIPE_RUN_ID`` and
    ``SECPIPE_RUN_STATUS``. Its output goes to ``<logs>/post-<kind>/<name>.log``.
    Failures are logged and never alter the run.
    Give it an executor with its own cancellation token so that post-actions
    still run after the pipeline was cancelled.
    """

    def __init__(
        self, step: StepDefinition, executor: "StepExecutor", kind: str = "always"
    ) -> None:
        self._step = step
        self._executor = executor
        self._kind = kind

    @property
    def name(self) -> str:
        return self._step.name

    @property
    def log_group(self) -> str:
        """Log directory for this action, one per post-action kind."""
        return f"{POST_ACTION_LOG_PREFIX}{self._kind}"

    def __call__(self, run: PipelineRun) -> None:
        env = run.environment.layer(
            {"SECPIPE_RUN_ID": run.run_id, "SECPIPE_RUN_STATUS": run.status.value},
            name="post",
        ).layer(self._step.env, name=f"post:{self._step.name}")
        try:
            result = self._executor.run(self._step, env, stage_name=self.log_group)
        except StepExecutionError as e:
            result = e.result
        if result.failed:
            LOGGER.warning(f"Post-action '{self._step.name}' failed: {result.error}")


class PipelineOrchestrator:
    """Owns the ordered stage list for a run.

    Stages run sequentially. A fail-fast abort (or cancellation) stops all
    later stages from starting; they are recorded as SKIPPED. Overall status:
    FAILURE on abort or cancellation, PARTIAL_FAILURE when only
    continue-on-error steps failed, SUCCESS otherwise. After the last stage the
    aggregate report is generated, then ``always`` post-actions run, then
    ``on_failure`` post-actions if the status is not SUCCESS.
    """

    def __init__(
        self,
        stage_runner: StageRunner,
        environment: EnvironmentScope,
        post_actions: Optional[PostActions] = None,
        report_generator: Optional["ReportGenerator"] = None,
        required_env: Sequence[str] = (),
    ) -> None:
        self._runner = stage_runner
        self._environment = environment
        self._post_actions = post_actions or PostActions()
        self._report_generator = report_generator
        self._required_env = tuple(required_env)

    def preflight(self, stages: Sequence[StageDefinition]) -> None:
        """Validate stage names and required configuration before any stage runs.

        Raises:
            ConfigError: On duplicate stage names or missing required values.
        """
        seen = set()
        for stage in stages:
            if stage.name in seen:
                raise ConfigError(f"Duplicate stage name '{stage.name}'")
            seen.add(stage.name)

        self._environment.require(self._required_env)

        for stage in stages:
            stage_env = self._environment.layer(stage.env, name=f"stage:{stage.name}")
            for step in stage.steps:
                if step.required_env:
                    stage_env.layer(step.env, name=f"step:{step.name}").require(
                        step.required_env
                    )

    def execute(self, stages: Sequence[StageDefinition]) -> PipelineRun:
        """Run ``stages`` in declaration order and return the finished run.

        Raises:
            ConfigError: From preflight, before any stage runs.
        """
        self.preflight(stages)

        run = PipelineRun(
            run_id=uuid.uuid4().hex,
            started_at=datetime.now(timezone.utc),
            environment=self._environment,
        )
        cancel_token = self._runner.cancel_token
        LOGGER.info(f"Pipeline run {run.run_id} started with {len(stages)} stages")

        for stage in stages:
            if run.aborted or cancel_token.cancelled:
                reason = "cancelled" if cancel_token.cancelled else f"aborted in '{run.aborted_stage}'"
                run.stages.append(self._skipped_stage(stage, reason))
                continue

            try:
                result = self._runner.run(stage, self._environment)
            except StageAbortedError as e:
                result = e.result
                run.aborted_stage = stage.name
            run.stages.append(result)

        run.cancelled = cancel_token.cancelled
        run.status = self.compute_status(run)
        run.finished_at = datetime.now(timezone.utc)
        LOGGER.info(f"Pipeline run {run.run_id} finished: {run.status.value}")

        self._generate_report(run)
        self._invoke("always", self._post_actions.always, run)
        if run.status != RunStatus.SUCCESS:
            self._invoke("on_failure", self._post_actions.on_failure, run)
        return run

    @staticmethod
    def compute_status(run: PipelineRun) -> RunStatus:
        if run.aborted or run.cancelled:
            return RunStatus.FAILURE
        if any(stage.has_failed_steps for stage in run.stages):
            return RunStatus.PARTIAL_FAILURE
        return RunStatus.SUCCESS

    @staticmethod
    def _skipped_stage(stage: StageDefinition, reason: str) -> StageResult:
        return StageResult(
            name=stage.name,
            steps=[StepResult.skipped(step.name, reason) for step in stage.steps],
            status=StageStatus.SKIPPED,
            error=reason,
        )

    def _generate_report(self, run: PipelineRun) -> None:
        if self._report_generator is None:
            return
        try:
            run.report = self._report_generator.generate(run)
        except Exception as e:
            LOGGER.error(f"Report generation failed: {e}")

    @staticmethod
    def _invoke(kind: str, actions: Sequence[PostAction], run: PipelineRun) -> None:
        for action in actions:
            name = getattr(action, "name", getattr(action, "__name__", repr(action)))
            LOGGER.debug(f"Running {kind} post-action '{name}'")
            try:
                action(run)
            except Exception as e:
                LOGGER.error(f"{kind} post-action '{name}' failed: {e}")
