# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Pipeline orchestration — fan out one job per platform, fan in for checksums.

    resolve release ──┬─ linux-amd64   build → archive → publish ─┐
                      ├─ macos-amd64   build → archive → publish ─┼─ barrier ─ checksums
                      └─ windows-amd64 build → archive → publish ─┘

Platform jobs run concurrently on a thread pool and share nothing except the
artifact store. They are fail-independent: one platform's broken toolchain
does not cancel the others, and their archives still get published. The
checksum stage is a strict barrier. It runs only after every job finished
successfully; if any job failed it is skipped and the run is failed.

No stage is retried.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence

from hippo_release.config.schema import ReleasePipelineConfig
from hippo_release.logging.logger import get_logger
from hippo_release.release.build.driver import BuildBackend, build_platform
from hippo_release.release.checksums.integrity import ChecksumManifest, aggregate_checksums
from hippo_release.release.exceptions import (
    ArchiveError,
    BuildError,
    PublishError,
    ReleaseError,
)
from hippo_release.release.packaging.archiver import ReleaseArchive, create_archive
from hippo_release.release.platforms.targets import (
    PlatformTarget,
    expected_archive_names,
    platforms_from_config,
)
from hippo_release.release.publishing.store import ArtifactStore, publish_archive
from hippo_release.release.version.resolver import TriggerContext, resolve_trigger

_logger: logging.Logger = get_logger(__name__)

STAGE_BUILD = "build"
STAGE_ARCHIVE = "archive"
STAGE_PUBLISH = "publish"
STAGE_DONE = "done"

_STAGE_BY_ERROR: dict[type[ReleaseError], str] = {
    BuildError: STAGE_BUILD,
    ArchiveError: STAGE_ARCHIVE,
    PublishError: STAGE_PUBLISH,
}


@dataclass(frozen=True)
class UnitSettings:
    """What every platform job needs besides its own PlatformTarget."""

    release: str
    binary_name: str
    auxiliary_files: tuple[Path, ...]
    source_date_epoch: int
    work_root: Path


@dataclass(frozen=True)
class UnitOutcome:
    """Terminal state of one platform job."""

    platform: PlatformTarget
    succeeded: bool
    stage: str
    archive: Optional[ReleaseArchive] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class PipelineResult:
    """Terminal state of a whole run."""

    release: str
    outcomes: list[UnitOutcome] = field(default_factory=list)
    manifest: Optional[ChecksumManifest] = None
    aggregation_error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return (
            all(o.succeeded for o in self.outcomes)
            and self.manifest is not None
            and self.aggregation_error is None
        )

    @property
    def failed_platforms(self) -> list[str]:
        return [o.platform.slug for o in self.outcomes if not o.succeeded]


def unit_settings_from_config(
    config: ReleasePipelineConfig, release: str, project_root: Path, work_root: Path
) -> UnitSettings:
    return UnitSettings(
        release=release,
        binary_name=config.release.binary_name,
        auxiliary_files=tuple(project_root / name for name in config.release.auxiliary_files),
        source_date_epoch=config.release.source_date_epoch,
        work_root=work_root,
    )


def run_platform_unit(
    platform: PlatformTarget,
    backend: BuildBackend,
    store: ArtifactStore,
    settings: UnitSettings,
) -> UnitOutcome:
    """
    Build, archive and publish one platform.

    Release errors are caught here and turned into a failed outcome, so a
    failing platform never takes the pool (or its siblings) down with it.
    Anything that is not a ReleaseError is a bug and propagates.
    """
    stage = STAGE_BUILD
    try:
        artifact = build_platform(backend, platform)

        stage = STAGE_ARCHIVE
        archive = create_archive(
            artifact,
            settings.release,
            settings.auxiliary_files,
            settings.work_root / platform.slug,
            binary_name=settings.binary_name,
            source_date_epoch=settings.source_date_epoch,
        )

        stage = STAGE_PUBLISH
        publish_archive(store, archive)

    except ReleaseError as err:
        failed_stage = _STAGE_BY_ERROR.get(type(err), stage)
        _logger.error(
            "Platform job failed",
            extra={
                "platform": platform.slug,
                "stage": failed_stage,
                "error_type": type(err).__name__,
                "error": str(err),
            },
        )
        return UnitOutcome(platform=platform, succeeded=False, stage=failed_stage, error=str(err))

    _logger.info(
        "Platform job succeeded",
        extra={"platform": platform.slug, "archive": archive.filename},
    )
    return UnitOutcome(platform=platform, succeeded=True, stage=STAGE_DONE, archive=archive)


def run_platform_units(
    platforms: Sequence[PlatformTarget],
    backend: BuildBackend,
    store: ArtifactStore,
    settings: UnitSettings,
    max_workers: Optional[int] = None,
) -> list[UnitOutcome]:
    """
    Run every platform job concurrently and wait for all of them.

    Returns outcomes in matrix order, regardless of completion order.
    """
    workers = max_workers or max(len(platforms), 1)
    _logger.info(
        "Starting platform jobs",
        extra={
            "release": settings.release,
            "platforms": [p.slug for p in platforms],
            "max_workers": workers,
        },
    )

    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="hippo-unit") as pool:
        futures = [
            pool.submit(run_platform_unit, platform, backend, store, settings)
            for platform in platforms
        ]
        # Leaving the with-block joins every job; result() re-raises bugs.
        outcomes = [future.result() for future in futures]

    return outcomes


def run_pipeline(
    config: ReleasePipelineConfig,
    trigger: TriggerContext,
    store: ArtifactStore,
    backend: BuildBackend,
    project_root: Path,
    work_root: Path,
    reset_group: bool = False,
) -> PipelineResult:
    """
    Run a complete release: resolve, fan out per platform, fan in for checksums.

    Args:
        config: Validated pipeline config (platform matrix, naming, workers).
        trigger: The ref that started the run.
        store: Artifact group every job publishes into.
        backend: Produces one executable per platform.
        project_root: Where the auxiliary files (README, LICENSE) live.
        work_root: Scratch directory for staging and archives.
        reset_group: Empty the artifact group before any job starts. A full run
            owns its group, and a rolling release rebuilds different bytes
            under the same names on every push.

    Returns:
        PipelineResult; check `.succeeded`.

    Raises:
        ResolutionError: If the trigger ref is not a release tag or mainline push.
        PublishError: If reset_group is set and the group cannot be cleared.
    """
    release = resolve_trigger(
        trigger,
        mainline_branch=config.release.mainline_branch,
        canary_label=config.release.canary_label,
    )
    platforms = platforms_from_config(config.platforms)
    settings = unit_settings_from_config(config, release, project_root, work_root)

    _logger.info(
        "Release pipeline started",
        extra={"release": release, "ref": trigger.ref, "group": store.group},
    )

    if reset_group:
        store.clear()

    outcomes = run_platform_units(
        platforms, backend, store, settings, max_workers=config.release.max_workers
    )

    failed = [o.platform.slug for o in outcomes if not o.succeeded]
    if failed:
        _logger.error(
            "Skipping checksums: platform jobs failed",
            extra={"release": release, "failed_platforms": failed},
        )
        return PipelineResult(release=release, outcomes=outcomes)

    expected = expected_archive_names(platforms, settings.binary_name, release)
    try:
        manifest = aggregate_checksums(store, release, expected, work_root)
    except ReleaseError as err:
        _logger.error(
            "Checksum aggregation failed",
            extra={"release": release, "error_type": type(err).__name__, "error": str(err)},
        )
        return PipelineResult(release=release, outcomes=outcomes, aggregation_error=str(err))

    _logger.info(
        "Release pipeline finished",
        extra={"release": release, "manifest": manifest.filename, "archives": len(expected)},
    )
    return PipelineResult(release=release, outcomes=outcomes, manifest=manifest)
