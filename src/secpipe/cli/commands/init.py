"""Init command implementation.

Writes the default security pipeline definition to .secpipe.yml.
"""

from __future__ import annotations

from argparse import Namespace
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from secpipe.config.models import SecPipeConfig

import questionary
from questionary import Style

from secpipe.cli.commands import Command
from secpipe.cli.exit_codes import EXIT_INVALID_USAGE, EXIT_SUCCESS
from secpipe.config.defaults import DEFAULT_CONFIG_NAME, write_default_pipeline
from secpipe.core.logging import get_logger

LOGGER = get_logger(__name__)

# Custom questionary style
STYLE = Style([
    ("qmark", "fg:cyan bold"),
    ("question", "bold"),
    ("answer", "fg:cyan"),
])


class InitCommand(Command):
    """Writes a default pipeline definition."""

    needs_config = False

    @property
    def name(self) -> str:
        """Command identifier."""
        return "init"

    def execute(self, args: Namespace, config: "SecPipeConfig | None" = None) -> int:
        """Execute the init command.

        Args:
            args: Parsed command-line arguments.
            config: Unused.

        Returns:
            Exit code.
        """
        project_root = Path(args.path).resolve()

        if not project_root.is_dir():
            print(f"Error: {project_root} is not a directory")
            return EXIT_INVALID_USAGE

        config_path = project_root / DEFAULT_CONFIG_NAME
        if config_path.exists() and not args.force:
            if args.non_interactive:
                print(f"Error: {config_path} already exists. Use --force to overwrite.")
                return EXIT_INVALID_USAGE

            overwrite = questionary.confirm(
                f"{DEFAULT_CONFIG_NAME} already exists. Overwrite?",
                default=False,
                style=STYLE,
            ).ask()

            if not overwrite:
                print("Aborted.")
                return EXIT_SUCCESS

        written = write_default_pipeline(project_root)
        LOGGER.info(f"Wrote default pipeline to {written}")
        print(f"Created {written}")
        print("Review the stages and run: secpipe run")
        return EXIT_SUCCESS
