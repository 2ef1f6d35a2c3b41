"""CLI commands package.

This module provides the base Command class and exports all command implementations.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from argparse import Namespace
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from secpipe.config.models import SecPipeConfig


class Command(ABC):
    """Base class for CLI commands.

    All CLI commands should inherit from this class and implement
    the execute method.
    """

    #: Whether the runner must load the pipeline definition first.
    needs_config = True

    @property
    @abstractmethod
    def name(self) -> str:
        """Command identifier.

        Returns:
            String name of the command.
        """

    @abstractmethod
    def execute(self, args: Namespace, config: "SecPipeConfig | None" = None) -> int:
        """Execute the command.

        Args:
            args: Parsed command-line arguments.
            config: Loaded pipeline definition, if the command needs one.

        Returns:
            Exit code (0 for success, non-zero for error).
        """


# Import command implementations for convenience
# ruff: noqa: E402
from secpipe.cli.commands.run import RunCommand
from secpipe.cli.commands.validate import ValidateCommand
from secpipe.cli.commands.stages import StagesCommand
from secpipe.cli.commands.init import InitCommand

__all__ = [
    "Command",
    "RunCommand",
    "ValidateCommand",
    "StagesCommand",
    "InitCommand",
]
