"""Argument parser for the secpipe CLI."""

from __future__ import annotations

import argparse
from pathlib import Path

from secpipe.reporters import list_available_reporters


def _add_project_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Workspace directory (default: current directory).",
    )
    parser.add_argument(
        "--config",
        metavar="PATH",
        type=Path,
        help="Path to pipeline definition (default: .secpipe.yml in the workspace).",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="secpipe",
        description="secpipe - Security CI pipeline runner.",
    )

    # Global options
    parser.add_argument(
        "--version",
        action="store_true",
        help="Show secpipe version and exit.",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose (info-level) logging.",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Reduce logging output to errors only.",
    )
    parser.add_argument(
        "--log-format",
        choices=["text", "json"],
        default="text",
        help="Log output format (default: text).",
    )

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")

    # run
    run_parser = subparsers.add_parser("run", help="Run the pipeline.")
    _add_project_arguments(run_parser)
    run_parser.add_argument(
        "--format",
        action="append",
        dest="formats",
        choices=list_available_reporters(),
        metavar="FORMAT",
        help="Report format to write (repeatable; default: as in config).",
    )
    run_parser.add_argument(
        "--no-report",
        action="store_true",
        help="Do not write the aggregate report.",
    )
    run_parser.add_argument(
        "--stream",
        action="store_true",
        help="Stream step output to the console while it runs.",
    )
    run_parser.add_argument(
        "--dashboard-url",
        metavar="URL",
        help="Dashboard link to include in the report.",
    )

    # validate
    validate_parser = subparsers.add_parser(
        "validate", help="Validate the pipeline definition."
    )
    _add_project_arguments(validate_parser)

    # stages
    stages_parser = subparsers.add_parser(
        "stages", help="List stages and steps of the pipeline."
    )
    _add_project_arguments(stages_parser)

    # init
    init_parser = subparsers.add_parser(
        "init", help="Write a default security pipeline definition."
    )
    init_parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Workspace directory (default: current directory).",
    )
    init_parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite an existing pipeline definition.",
    )
    init_parser.add_argument(
        "--non-interactive",
        action="store_true",
        help="Never prompt; fail if a definition already exists.",
    )

    return parser
