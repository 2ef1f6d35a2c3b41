"""Stages command implementation."""

from __future__ import annotations

from argparse import Namespace
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from secpipe.config.models import SecPipeConfig

from secpipe.cli.commands import Command
from secpipe.cli.exit_codes import EXIT_INVALID_USAGE, EXIT_SUCCESS
from secpipe.core.models import StepDefinition


class StagesCommand(Command):
    """Lists the pipeline's stages and steps in execution order."""

    @property
    def name(self) -> str:
        """Command identifier."""
        return "stages"

    def execute(self, args: Namespace, config: "SecPipeConfig | None" = None) -> int:
        if config is None:
            return EXIT_INVALID_USAGE

        print(f"Pipeline: {config.name}")
        print()
        for stage in config.stages:
            print(f"{stage.name}")
            for step in stage.steps:
                print(f"  - {self._describe(step)}")
            for artifact in stage.artifacts:
                print(f"  * artifact '{artifact.label}': {artifact.path}")
        return EXIT_SUCCESS

    @staticmethod
    def _describe(step: StepDefinition) -> str:
        details = [step.failure_policy.value]
        if step.timeout:
            details.append(f"timeout {step.timeout:g}s")
        if step.success_codes != (0,):
            details.append("ok on " + ",".join(str(c) for c in step.success_codes))
        if step.credentials:
            details.append("credentials: " + ", ".join(c.id for c in step.credentials))
        return f"{step.name} [{'; '.join(details)}]"
