# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Subcommand handlers for the hippo-release CLI.

Each function here corresponds to one CLI subcommand and returns an exit
code. No print() calls; everything goes through the structured logger.

Artifacts for a run live under
    <project-root>/<artifacts.root>/<release>/<run-id>/<artifacts.group>/
and scratch files under
    <project-root>/<artifacts.work_directory>/<release>/<run-id>/
so a canary run and a tagged run never share a group, and neither do two
CI runs of the same rolling release. The run id comes from --run-id, then
$GITHUB_RUN_ID, and is "local" otherwise. `run` clears its group first.
"""

import argparse
import logging
import os
from pathlib import Path
from typing import Optional

from hippo_release.cli.exit_codes import (
    CONFIG_ERROR,
    RUNTIME_ERROR,
    SUCCESS,
    USER_ERROR,
    VALIDATION_ERROR,
)
from hippo_release.config.exceptions import ConfigError
from hippo_release.config.loader import default_config, load_config
from hippo_release.config.schema import ReleasePipelineConfig
from hippo_release.logging.logger import get_logger
from hippo_release.release.exceptions import AggregationError, ReleaseError, ResolutionError
from hippo_release.release.publishing.store import FilesystemArtifactStore
from hippo_release.release.version.resolver import TriggerContext, TriggerKind, resolve_trigger
from hippo_release.runtime.bootstrap import bootstrap

REF_ENV_VAR = "GITHUB_REF"
RUN_ID_ENV_VAR = "GITHUB_RUN_ID"
LOCAL_RUN_ID = "local"


def _load_and_bootstrap(
    args: argparse.Namespace,
    command_name: str,
) -> tuple[int, Optional[ReleasePipelineConfig], logging.Logger]:
    """
    The shared setup every command needs: load config, run bootstrap.

    Returns (exit_code, config, logger). If exit_code is not SUCCESS the
    caller returns it immediately.
    """
    logger = get_logger(f"hippo_release.cli.{command_name}", log_level=args.log_level or "INFO")

    try:
        if args.config is not None:
            config = load_config(Path(args.config))
        else:
            config = default_config()
    except ConfigError as err:
        logger.error(
            "Configuration error",
            extra={"command": command_name, "error": str(err)},
        )
        return CONFIG_ERROR, None, logger

    if args.log_level is not None:
        config = config.model_copy(
            update={
                "global_config": config.global_config.model_copy(
                    update={"log_level": args.log_level}
                )
            }
        )
    bootstrap(config.global_config)
    logger = get_logger(
        f"hippo_release.cli.{command_name}", log_level=config.global_config.log_level
    )

    if args.config is None:
        logger.debug(
            "No config provided, running with defaults",
            extra={"command": command_name},
        )

    return SUCCESS, config, logger


def _trigger_from_args(args: argparse.Namespace) -> Optional[TriggerContext]:
    ref = args.ref if args.ref is not None else os.environ.get(REF_ENV_VAR)
    if not ref:
        return None
    kind = TriggerKind(args.event) if args.event is not None else None
    return TriggerContext(ref=ref, kind=kind)


def _resolve_release(
    args: argparse.Namespace,
    config: ReleasePipelineConfig,
    logger: logging.Logger,
) -> tuple[int, Optional[TriggerContext], Optional[str]]:
    """Resolve the release identifier or return the exit code to fail with."""
    trigger = _trigger_from_args(args)
    if trigger is None:
        logger.error(
            "No ref given",
            extra={"hint": f"pass --ref or set {REF_ENV_VAR}"},
        )
        return USER_ERROR, None, None

    try:
        release = resolve_trigger(
            trigger,
            mainline_branch=config.release.mainline_branch,
            canary_label=config.release.canary_label,
        )
    except ResolutionError as err:
        logger.error("Cannot resolve release", extra={"ref": trigger.ref, "error": str(err)})
        return USER_ERROR, trigger, None

    run_id = _run_id(args)
    if run_id in {"", ".", ".."} or "/" in run_id or "\\" in run_id:
        # The run id becomes one directory level under the release.
        logger.error("Invalid run id", extra={"run_id": run_id})
        return USER_ERROR, trigger, None

    return SUCCESS, trigger, release


def _project_root(args: argparse.Namespace) -> Path:
    return Path(args.project_root).resolve()


def _run_id(args: argparse.Namespace) -> str:
    if args.run_id is not None:
        return args.run_id
    return os.environ.get(RUN_ID_ENV_VAR) or LOCAL_RUN_ID


def _open_store(
    config: ReleasePipelineConfig, project_root: Path, release: str, run_id: str
) -> FilesystemArtifactStore:
    return FilesystemArtifactStore(
        project_root / config.artifacts.root / release / run_id, config.artifacts.group
    )


def _work_root(
    config: ReleasePipelineConfig, project_root: Path, release: str, run_id: str
) -> Path:
    return project_root / config.artifacts.work_directory / release / run_id


def handle_resolve(args: argparse.Namespace) -> int:
    """Resolve and log the release identifier for a ref."""
    exit_code, config, logger = _load_and_bootstrap(args, "resolve")
    if exit_code != SUCCESS or config is None:
        return exit_code

    exit_code, trigger, release = _resolve_release(args, config, logger)
    if exit_code != SUCCESS or trigger is None:
        return exit_code

    logger.info("Release resolved", extra={"ref": trigger.ref, "release": release})
    return SUCCESS


def handle_platforms(args: argparse.Namespace) -> int:
    """Log the configured platform matrix with the archive each entry produces."""
    exit_code, config, logger = _load_and_bootstrap(args, "platforms")
    if exit_code != SUCCESS or config is None:
        return exit_code

    from hippo_release.release.platforms.targets import platforms_from_config

    release = config.release.canary_label
    if _trigger_from_args(args) is not None:
        exit_code, _, resolved = _resolve_release(args, config, logger)
        if exit_code != SUCCESS or resolved is None:
            return exit_code
        release = resolved

    for platform in platforms_from_config(config.platforms):
        logger.info(
            "Platform",
            extra={
                "platform": platform.slug,
                "target": platform.target,
                "executable": platform.executable_name(config.release.binary_name),
                "archive": platform.archive_filename(config.release.binary_name, release),
                "env": dict(platform.env),
            },
        )
    return SUCCESS


def handle_run(args: argparse.Namespace) -> int:
    """Run the whole pipeline: every platform job, then the checksum manifest."""
    exit_code, config, logger = _load_and_bootstrap(args, "run")
    if exit_code != SUCCESS or config is None:
        return exit_code

    exit_code, trigger, release = _resolve_release(args, config, logger)
    if exit_code != SUCCESS or trigger is None or release is None:
        return exit_code

    try:
        from hippo_release.release.build.driver import create_backend
        from hippo_release.release.pipeline.runner import run_pipeline
        from hippo_release.release.platforms.targets import (
            expected_archive_names,
            platforms_from_config,
        )

        project_root = _project_root(args)

        if args.dry_run:
            platforms = platforms_from_config(config.platforms)
            logger.info(
                "Dry run: would publish archives",
                extra={
                    "release": release,
                    "archives": expected_archive_names(
                        platforms, config.release.binary_name, release
                    ),
                },
            )
            return SUCCESS

        backend = create_backend(config.build, config.release.binary_name, project_root)
        run_id = _run_id(args)
        store = _open_store(config, project_root, release, run_id)
        result = run_pipeline(
            config,
            trigger,
            store,
            backend,
            project_root=project_root,
            work_root=_work_root(config, project_root, release, run_id),
            reset_group=True,
        )

        if result.failed_platforms:
            logger.error(
                "Release failed",
                extra={"release": release, "failed_platforms": result.failed_platforms},
            )
            return RUNTIME_ERROR
        if result.aggregation_error is not None:
            logger.error(
                "Release failed at checksum stage",
                extra={"release": release, "error": result.aggregation_error},
            )
            return VALIDATION_ERROR

        logger.info(
            "Release complete",
            extra={
                "release": release,
                "group": str(store.directory),
                "manifest": result.manifest.filename if result.manifest else None,
            },
        )
        return SUCCESS

    except ReleaseError as err:
        logger.error("Release failed", extra={"error": str(err)})
        return RUNTIME_ERROR
    except Exception as err:
        logger.error("Release failed", extra={"error": str(err)}, exc_info=True)
        return RUNTIME_ERROR


def handle_unit(args: argparse.Namespace) -> int:
    """Build, package and publish one platform (one CI matrix job)."""
    exit_code, config, logger = _load_and_bootstrap(args, "unit")
    if exit_code != SUCCESS or config is None:
        return exit_code

    exit_code, _, release = _resolve_release(args, config, logger)
    if exit_code != SUCCESS or release is None:
        return exit_code

    from hippo_release.release.build.driver import create_backend
    from hippo_release.release.pipeline.runner import run_platform_unit, unit_settings_from_config
    from hippo_release.release.platforms.targets import find_platform, platforms_from_config
    from hippo_release.runtime.environment import host_platform_slug

    slug = args.platform or host_platform_slug()
    try:
        platform = find_platform(platforms_from_config(config.platforms), slug)
    except KeyError as err:
        logger.error("Unknown platform", extra={"platform": slug, "error": str(err)})
        return USER_ERROR

    try:
        if args.dry_run:
            logger.info(
                "Dry run: would publish archive",
                extra={
                    "platform": platform.slug,
                    "archive": platform.archive_filename(config.release.binary_name, release),
                },
            )
            return SUCCESS

        project_root = _project_root(args)
        backend = create_backend(config.build, config.release.binary_name, project_root)
        run_id = _run_id(args)
        store = _open_store(config, project_root, release, run_id)
        settings = unit_settings_from_config(
            config, release, project_root, _work_root(config, project_root, release, run_id)
        )
        outcome = run_platform_unit(platform, backend, store, settings)

        if not outcome.succeeded:
            return RUNTIME_ERROR
        return SUCCESS

    except Exception as err:
        logger.error("Platform job failed", extra={"error": str(err)}, exc_info=True)
        return RUNTIME_ERROR


def handle_checksums(args: argparse.Namespace) -> int:
    """Write and publish the checksum manifest over every archive of the run."""
    exit_code, config, logger = _load_and_bootstrap(args, "checksums")
    if exit_code != SUCCESS or config is None:
        return exit_code

    exit_code, _, release = _resolve_release(args, config, logger)
    if exit_code != SUCCESS or release is None:
        return exit_code

    from hippo_release.release.checksums.integrity import aggregate_checksums, manifest_filename
    from hippo_release.release.platforms.targets import (
        expected_archive_names,
        platforms_from_config,
    )

    project_root = _project_root(args)
    expected = expected_archive_names(
        platforms_from_config(config.platforms), config.release.binary_name, release
    )

    try:
        if args.dry_run:
            logger.info(
                "Dry run: would write manifest",
                extra={"manifest": manifest_filename(release), "archives": expected},
            )
            return SUCCESS

        run_id = _run_id(args)
        store = _open_store(config, project_root, release, run_id)
        manifest = aggregate_checksums(
            store, release, expected, _work_root(config, project_root, release, run_id)
        )
        logger.info(
            "Checksums complete",
            extra={"manifest": manifest.filename, "entries": len(manifest.entries)},
        )
        return SUCCESS

    except AggregationError as err:
        logger.error("Checksum aggregation failed", extra={"error": str(err)})
        return VALIDATION_ERROR
    except Exception as err:
        logger.error("Checksum stage failed", extra={"error": str(err)}, exc_info=True)
        return RUNTIME_ERROR


def handle_verify(args: argparse.Namespace) -> int:
    """Check a published manifest against the archives in the group."""
    exit_code, config, logger = _load_and_bootstrap(args, "verify")
    if exit_code != SUCCESS or config is None:
        return exit_code

    exit_code, _, release = _resolve_release(args, config, logger)
    if exit_code != SUCCESS or release is None:
        return exit_code

    from hippo_release.release.checksums.integrity import verify_manifest

    try:
        store = _open_store(config, _project_root(args), release, _run_id(args))
        result = verify_manifest(store, release)

        if not result.is_valid:
            logger.error(
                "Verification failed",
                extra={
                    "release": release,
                    "mismatches": result.mismatches,
                    "missing": result.missing_files,
                    "unlisted": result.unlisted_files,
                    "errors": result.errors,
                },
            )
            return VALIDATION_ERROR

        logger.info(
            "Verification passed",
            extra={"release": release, "checked_count": result.checked_count},
        )
        return SUCCESS

    except Exception as err:
        logger.error("Verification failed", extra={"error": str(err)}, exc_info=True)
        return RUNTIME_ERROR


def handle_info(args: argparse.Namespace) -> int:
    """Display version and environment information."""
    logger = get_logger("hippo_release.cli.info", log_level=args.log_level or "INFO")

    from hippo_release import __version__
    from hippo_release.runtime.environment import get_system_info, host_platform_slug

    system_info = get_system_info()

    logger.info(
        "System information",
        extra={
            "hippo_release_version": __version__,
            "python_version": system_info.python_version,
            "platform": system_info.platform,
            "architecture": system_info.architecture,
            "host_platform": host_platform_slug(),
            "hostname": system_info.hostname,
            "config": args.config,
        },
    )
    return SUCCESS
