# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
CLI entrypoint for hippo-release.

One root command, every operation a subcommand. The global options
(--config, --log-level, --dry-run, --project-root) are inherited by every
subcommand through argparse's parent parser mechanism.

Usage:
    hippo-release resolve --ref refs/tags/v2.0.0
    hippo-release run --config configs/release.yaml
    hippo-release unit --platform windows-amd64
    hippo-release checksums
    hippo-release verify --ref refs/heads/main

When --ref is omitted, GITHUB_REF from the environment is used. Likewise
GITHUB_RUN_ID stands in for --run-id.
"""

import argparse
import sys

from hippo_release.cli.commands import (
    handle_checksums,
    handle_info,
    handle_platforms,
    handle_resolve,
    handle_run,
    handle_unit,
    handle_verify,
)
from hippo_release.cli.exit_codes import USER_ERROR


def _build_global_parser() -> argparse.ArgumentParser:
    """
    Build the parent parser with global options.

    add_help=False so help text doesn't collide between the parent and the
    subcommand parsers.
    """
    parent = argparse.ArgumentParser(add_help=False)
    parent.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to YAML configuration file. Built-in defaults are used when omitted.",
    )
    parent.add_argument(
        "--log-level",
        type=str,
        default=None,
        dest="log_level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Override the configured logging verbosity.",
    )
    parent.add_argument(
        "--dry-run",
        action="store_true",
        default=False,
        dest="dry_run",
        help="Log what would be done without building or writing anything.",
    )
    parent.add_argument(
        "--project-root",
        type=str,
        default=".",
        dest="project_root",
        help="Checkout being released; README, LICENSE and relative paths resolve against it.",
    )
    return parent


def _build_ref_parser() -> argparse.ArgumentParser:
    """Options for subcommands that need to know which release they work on."""
    ref_parser = argparse.ArgumentParser(add_help=False)
    ref_parser.add_argument(
        "--ref",
        type=str,
        default=None,
        help="Git ref that triggered the run (refs/tags/v* or the mainline head). "
        "Defaults to $GITHUB_REF.",
    )
    ref_parser.add_argument(
        "--event",
        type=str,
        default=None,
        choices=["tag", "mainline"],
        help="Declared trigger kind; checked against --ref when given.",
    )
    ref_parser.add_argument(
        "--run-id",
        type=str,
        default=None,
        help="Identifier that scopes the artifact group to one pipeline run. "
        "Defaults to $GITHUB_RUN_ID, then \"local\".",
    )
    return ref_parser


def _register_subcommands(
    subparsers: argparse._SubParsersAction,  # type: ignore[type-arg]
    parent: argparse.ArgumentParser,
) -> None:
    """
    Register all subcommands with their handler functions.

    Each subcommand sets its handler via set_defaults(func=...).
    """
    ref_parser = _build_ref_parser()

    commands = [
        ("resolve", "Resolve the release identifier from a ref.", handle_resolve, True),
        ("platforms", "List the platform matrix and archive names.", handle_platforms, True),
        ("run", "Build, package and publish every platform, then write checksums.", handle_run, True),
        ("unit", "Build, package and publish a single platform.", handle_unit, True),
        ("checksums", "Write the checksum manifest over all published archives.", handle_checksums, True),
        ("verify", "Verify a published checksum manifest.", handle_verify, True),
        ("info", "Display version and environment info.", handle_info, False),
    ]

    for name, help_text, handler, needs_ref in commands:
        parents = [parent, ref_parser] if needs_ref else [parent]
        parser = subparsers.add_parser(name, parents=parents, help=help_text)
        parser.set_defaults(func=handler)

    unit_parser = subparsers.choices["unit"]
    unit_parser.add_argument(
        "--platform",
        type=str,
        default=None,
        help="Platform to package as <os>-<arch>, e.g. linux-amd64. Defaults to the host.",
    )


def main() -> None:
    """
    Main CLI entrypoint. This is what pyproject.toml's [project.scripts] points to.

    If no subcommand is given, show help and exit with USER_ERROR.
    """
    parent = _build_global_parser()

    root_parser = argparse.ArgumentParser(
        prog="hippo-release",
        description="hippo-release — package, publish and checksum hippo release archives.",
        parents=[parent],
    )
    subparsers = root_parser.add_subparsers(dest="command")
    _register_subcommands(subparsers, parent)

    args = root_parser.parse_args()

    if not hasattr(args, "func") or args.func is None:
        root_parser.print_help()
        sys.exit(USER_ERROR)

    exit_code = args.func(args)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
