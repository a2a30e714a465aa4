"""Command-line entry point for building and deploying the style guide site."""

from __future__ import annotations

import argparse
import sys
import uuid
from pathlib import Path
from typing import TYPE_CHECKING

from styledocs.config import render_mkdocs_yaml
from styledocs.lifecycle import DocBuildStep, DocLifecycle
from styledocs.logging import CorrelationContext, setup_logging
from styledocs.problem_details import render_problem
from styledocs.project import discover_root, style_guide_project
from styledocs.settings import SettingsError, get_runtime_settings

if TYPE_CHECKING:
    from collections.abc import Sequence

__all__ = ["build_parser", "main"]


def build_parser() -> argparse.ArgumentParser:
    """Return the argument parser of the ``styledocs`` command."""
    parser = argparse.ArgumentParser(
        prog="styledocs",
        description="Generate the style guide site from README.md and deploy it.",
    )
    parser.add_argument(
        "--root",
        type=Path,
        default=None,
        help="Repository root. Defaults to the nearest directory containing .git.",
    )
    parser.add_argument(
        "--skip-deploy",
        action="store_true",
        help="Stop after the build stage.",
    )
    parser.add_argument(
        "--correlation-id",
        default=None,
        help="Correlation identifier used for structured logging and Problem Details emission.",
    )
    parser.add_argument(
        "--print-config",
        action="store_true",
        help="Print the generated MkDocs configuration and exit.",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the documentation build.

    Parameters
    ----------
    argv : Sequence[str] | None, optional
        Command-line arguments, defaults to ``sys.argv``.

    Returns
    -------
    int
        Exit code: 0 on success, 1 on error, 130 when interrupted.
    """
    args = build_parser().parse_args(list(argv) if argv is not None else None)
    try:
        settings = get_runtime_settings()
    except SettingsError as exc:
        sys.stderr.write(render_problem(exc.problem) + "\n")
        return 1
    setup_logging(settings.log_level)

    root = (args.root or discover_root()).resolve()
    project = style_guide_project(root)

    if args.print_config:
        sys.stdout.write(render_mkdocs_yaml(project.site))
        return 0

    correlation_id = args.correlation_id or uuid.uuid4().hex
    with CorrelationContext(correlation_id):
        lifecycle = DocLifecycle(DocBuildStep(project), skip_deploy=args.skip_deploy)
        return lifecycle.run()


if __name__ == "__main__":
    raise SystemExit(main())
