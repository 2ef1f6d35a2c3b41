"""CLI runner: parses arguments, configures logging and dispatches commands."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Dict, Iterable, Optional

from secpipe.cli.arguments import build_parser
from secpipe.cli.commands import (
    Command,
    InitCommand,
    RunCommand,
    StagesCommand,
    ValidateCommand,
)
from secpipe.cli.exit_codes import EXIT_INVALID_USAGE, EXIT_SUCCESS
from secpipe.config import load_config
from secpipe.core.errors import ConfigError
from secpipe.core.logging import configure_logging, get_logger

LOGGER = get_logger(__name__)


def get_version() -> str:
    try:
        return version("secpipe")
    except PackageNotFoundError:
        # Running from a source checkout without installed metadata.
        from secpipe import __version__

        return __version__


class CLIRunner:
    """Maps subcommands to Command instances and runs them."""

    def __init__(self) -> None:
        commands = [RunCommand(), ValidateCommand(), StagesCommand(), InitCommand()]
        self._commands: Dict[str, Command] = {c.name: c for c in commands}

    def run(self, argv: Optional[Iterable[str]] = None) -> int:
        parser = build_parser()
        args = parser.parse_args(list(argv) if argv is not None else None)

        # Configure logging as early as possible.
        configure_logging(
            debug=args.debug,
            verbose=args.verbose,
            quiet=args.quiet,
            log_format=args.log_format,
        )

        if args.version:
            print(get_version())
            return EXIT_SUCCESS

        command = self._commands.get(args.command or "")
        if command is None:
            parser.print_help()
            return EXIT_SUCCESS

        config = None
        if command.needs_config:
            try:
                config = load_config(
                    project_root=Path(args.path).resolve(),
                    cli_config_path=args.config,
                )
            except ConfigError as e:
                LOGGER.error(str(e))
                print(f"Error: {e}")
                return EXIT_INVALID_USAGE

        return command.execute(args, config)
