"""Stage runner: sequences a stage's steps and runs its post-actions."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from secpipe.artifacts.store import ArtifactStore
from secpipe.core.cancellation import CancellationToken
from secpipe.core.environment import EnvironmentScope
from secpipe.core.errors import (
    ArtifactMissingError,
    ConfigError,
    CredentialError,
    StageAbortedError,
    StepExecutionError,
)
from secpipe.core.logging import get_logger
from secpipe.core.models import (
    Artifact,
    StageDefinition,
    StageResult,
    StageStatus,
    StepResult,
    StepStatus,
)
from secpipe.pipeline.executor import StepExecutor

LOGGER = get_logger(__name__)


class StageRunner:
    """Runs the steps of one stage in declaration order.

    After the last step, whether it succeeded, failed under continue-on-error
    or aborted the stage, the stage's artifact post-actions run exactly once.

    Stage status is FAILED when a fail-fast step failed, when a credential
    could not be bound, and when the run was cancelled mid-stage. Failures of
    continue-on-error steps leave the stage SUCCESS with ``has_failed_steps``
    set.
    """

    def __init__(self, executor: StepExecutor, artifact_store: ArtifactStore) -> None:
        self._executor = executor
        self._store = artifact_store

    @property
    def cancel_token(self) -> CancellationToken:
        return self._executor.cancel_token

    def run(self, stage: StageDefinition, env: EnvironmentScope) -> StageResult:
        """Run ``stage`` under the inherited scope ``env``.

        Returns:
            The StageResult, when the stage did not abort.

        Raises:
            StageAbortedError: After post-actions, if a fail-fast step failed
                or a credential could not be bound. Carries the StageResult.
        """
        LOGGER.info(f"Starting stage '{stage.name}' ({len(stage.steps)} steps)")
        result = StageResult(name=stage.name)
        stage_env = env.layer(stage.env, name=f"stage:{stage.name}")
        cancel_token = self.cancel_token
        abort_cause: Optional[BaseException] = None

        for step in stage.steps:
            if abort_cause is not None or cancel_token.cancelled:
                reason = "cancelled" if cancel_token.cancelled else "skipped after fail-fast abort"
                result.steps.append(StepResult.skipped(step.name, reason))
                continue

            step_env = stage_env.layer(step.env, name=f"step:{step.name}")
            try:
                step_env.require(step.required_env)
                step_result = self._executor.run(step, step_env, stage_name=stage.name)
            except StepExecutionError as e:
                step_result = e.result
                abort_cause = e
            except (CredentialError, ConfigError) as e:
                # Unsafe to proceed past a missing credential, regardless of policy.
                LOGGER.error(f"Step '{step.name}' in stage '{stage.name}': {e}")
                step_result = StepResult(
                    name=step.name,
                    status=StepStatus.FAILED,
                    output_path=self._write_error_log(stage.name, step.name, str(e)),
                    error=str(e),
                )
                abort_cause = e
            result.steps.append(step_result)

        if abort_cause is not None:
            result.status = StageStatus.FAILED
            result.error = str(abort_cause)
        elif cancel_token.cancelled:
            result.status = StageStatus.FAILED
            result.error = "cancelled"

        self._run_post_actions(stage, result)

        if abort_cause is not None:
            LOGGER.error(f"Stage '{stage.name}' aborted: {abort_cause}")
            raise StageAbortedError(result, abort_cause)

        if result.has_failed_steps:
            LOGGER.warning(f"Stage '{stage.name}' completed with failed steps")
        else:
            LOGGER.info(f"Stage '{stage.name}' completed")
        return result

    def _run_post_actions(self, stage: StageDefinition, result: StageResult) -> None:
        """Archive declared artifacts. Never raises."""
        for declaration in stage.artifacts:
            artifact = Artifact(
                label=declaration.label,
                pattern=declaration.path,
                stage=stage.name,
            )
            try:
                artifact.files = self._store.archive(
                    declaration.path,
                    allow_empty_if_missing=declaration.allow_empty,
                )
            except ArtifactMissingError as e:
                LOGGER.warning(f"Stage '{stage.name}': {e}")
                artifact.error = str(e)
            except OSError as e:
                LOGGER.error(f"Failed to archive '{declaration.path}' for stage '{stage.name}': {e}")
                artifact.error = str(e)
            result.artifacts.append(artifact)

    def _write_error_log(self, stage_name: str, step_name: str, message: str) -> Optional[Path]:
        log_path = self._executor.log_path(stage_name, step_name)
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            log_path.write_text(f"[secpipe] {message}\n", encoding="utf-8")
        except OSError as e:
            LOGGER.error(f"Could not write step log {log_path}: {e}")
            return None
        return log_path
