"""Validate command implementation."""

from __future__ import annotations

from argparse import Namespace
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from secpipe.config.models import SecPipeConfig

from secpipe.cli.commands import Command
from secpipe.cli.exit_codes import EXIT_INVALID_USAGE, EXIT_SUCCESS
from secpipe.core.errors import ConfigError


class ValidateCommand(Command):
    """Validates the pipeline definition without running it."""

    @property
    def name(self) -> str:
        """Command identifier."""
        return "validate"

    def execute(self, args: Namespace, config: "SecPipeConfig | None" = None) -> int:
        """Execute the validate command.

        Structural errors are reported by the loader before this runs; here
        the credential store selection is checked as well and warnings listed.

        Args:
            args: Parsed command-line arguments.
            config: Loaded pipeline definition.

        Returns:
            Exit code.
        """
        if config is None:
            return EXIT_INVALID_USAGE

        try:
            config.credentials.build_store(Path(args.path).resolve())
        except ConfigError as e:
            print(f"Invalid: {e}")
            return EXIT_INVALID_USAGE

        for warning in config.warnings:
            print(f"Warning: {warning}")

        step_count = sum(len(stage.steps) for stage in config.stages)
        print(
            f"Pipeline '{config.name}' is valid: "
            f"{len(config.stages)} stages, {step_count} steps"
        )
        for index, stage in enumerate(config.stages, start=1):
            print(f"  {index}. {stage.name}")
        return EXIT_SUCCESS
