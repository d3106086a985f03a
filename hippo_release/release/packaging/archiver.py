# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Release archiver — wraps one platform's executable together with README and
LICENSE into a single archive.

    hippo-<release>-<os>-<arch>.tar.gz   (Linux, macOS, anything not Windows)
    hippo-<release>-<os>-<arch>.zip      (Windows)

The archive holds exactly the staged files, flat, with no directory prefix:

    README.md
    LICENSE
    hippo            (hippo.exe on Windows)

Archives are reproducible: packaging the same executable for the same release
twice gives byte-identical output. To get there every source of drift is
pinned: entry order, timestamps (source_date_epoch), owner and group, file
modes, and the gzip header (no embedded name, mtime 0).

A failed archive never leaves a partial file behind. Like a release, an
archive either exists completely or not at all.
"""

import gzip
import logging
import shutil
import tarfile
import time
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from hippo_release.config.schema import DEFAULT_SOURCE_DATE_EPOCH
from hippo_release.logging.logger import get_logger
from hippo_release.release.build.driver import BuildArtifact
from hippo_release.release.exceptions import ArchiveError
from hippo_release.release.platforms.targets import ArchiveFormat, PlatformTarget
from hippo_release.utils.filesystem import ensure_directory, reset_directory
from hippo_release.utils.hashing import compute_sha256

_logger: logging.Logger = get_logger(__name__)

EXECUTABLE_MODE = 0o755
REGULAR_FILE_MODE = 0o644
GZIP_COMPRESS_LEVEL = 9


@dataclass(frozen=True)
class StagedFile:
    """A file placed in the staging directory, with the mode it gets in the archive."""

    name: str
    path: Path
    mode: int


@dataclass(frozen=True)
class ReleaseArchive:
    """One packaged platform archive. Created once, never modified."""

    platform: PlatformTarget
    release: str
    filename: str
    path: Path
    sha256: str
    size_bytes: int


def stage_files(
    artifact: BuildArtifact,
    auxiliary_files: Sequence[Path],
    staging_dir: Path,
    binary_name: str = "hippo",
) -> list[StagedFile]:
    """
    Copy the auxiliary files and the renamed executable into a clean directory.

    The staging directory is wiped first so nothing from an earlier attempt
    can leak into the archive. Returned order is archive order: auxiliary
    files as given, then the executable.

    Raises:
        ArchiveError: If an auxiliary file is missing or the copy fails.
    """
    seen: set[str] = set()
    for aux in auxiliary_files:
        if not aux.is_file():
            raise ArchiveError(f"Auxiliary file not found: {aux}")
        if aux.name in seen:
            raise ArchiveError(f"Two auxiliary files share the name {aux.name!r}")
        seen.add(aux.name)

    executable_name = artifact.platform.executable_name(binary_name)
    if executable_name in seen:
        raise ArchiveError(f"Auxiliary file name {executable_name!r} collides with the executable")

    try:
        reset_directory(staging_dir)
        staged: list[StagedFile] = []
        for aux in auxiliary_files:
            dst = staging_dir / aux.name
            shutil.copyfile(aux, dst)
            staged.append(StagedFile(name=aux.name, path=dst, mode=REGULAR_FILE_MODE))

        dst_exe = staging_dir / executable_name
        shutil.copyfile(artifact.path, dst_exe)
        dst_exe.chmod(EXECUTABLE_MODE)
        staged.append(StagedFile(name=executable_name, path=dst_exe, mode=EXECUTABLE_MODE))
    except OSError as err:
        raise ArchiveError(f"Staging failed for {artifact.platform.slug}: {err}") from err

    _logger.debug(
        "Files staged",
        extra={
            "platform": artifact.platform.slug,
            "staging_dir": str(staging_dir),
            "files": [s.name for s in staged],
        },
    )
    return staged


def _write_tar_gz(staged: Sequence[StagedFile], archive_path: Path, mtime: int) -> None:
    with open(archive_path, "wb") as raw:
        # filename="" and mtime=0 keep the gzip header identical between runs.
        with gzip.GzipFile(
            filename="", mode="wb", fileobj=raw, compresslevel=GZIP_COMPRESS_LEVEL, mtime=0
        ) as gz:
            with tarfile.open(fileobj=gz, mode="w", format=tarfile.GNU_FORMAT) as tar:
                for item in staged:
                    info = tarfile.TarInfo(name=item.name)
                    info.size = item.path.stat().st_size
                    info.mtime = mtime
                    info.mode = item.mode
                    info.uid = 0
                    info.gid = 0
                    info.uname = ""
                    info.gname = ""
                    with open(item.path, "rb") as f:
                        tar.addfile(info, f)


def _write_zip(staged: Sequence[StagedFile], archive_path: Path, mtime: int) -> None:
    date_time = time.gmtime(mtime)[:6]
    with zipfile.ZipFile(archive_path, mode="w", compression=zipfile.ZIP_DEFLATED) as zf:
        for item in staged:
            info = zipfile.ZipInfo(filename=item.name, date_time=date_time)
            info.compress_type = zipfile.ZIP_DEFLATED
            info.create_system = 3  # unix, so external_attr carries the mode
            info.external_attr = (0o100000 | item.mode) << 16
            zf.writestr(info, item.path.read_bytes())


def write_archive(
    staged: Sequence[StagedFile],
    archive_path: Path,
    archive_format: ArchiveFormat,
    source_date_epoch: int = DEFAULT_SOURCE_DATE_EPOCH,
) -> None:
    """
    Write staged files into an archive of the given format.

    Entries are written in the order given, under their bare names.
    """
    if archive_format is ArchiveFormat.ZIP:
        _write_zip(staged, archive_path, source_date_epoch)
    else:
        _write_tar_gz(staged, archive_path, source_date_epoch)


def create_archive(
    artifact: BuildArtifact,
    release: str,
    auxiliary_files: Sequence[Path],
    output_dir: Path,
    binary_name: str = "hippo",
    source_date_epoch: int = DEFAULT_SOURCE_DATE_EPOCH,
) -> ReleaseArchive:
    """
    Package one platform's executable into its release archive.

    Steps:
      1. Stage README, LICENSE and the (suffixed) executable in a clean dir
      2. Name the archive hippo-<release>-<os>-<arch>
      3. Zip for Windows, tar.gz for everything else
      4. Hash the result

    Args:
        artifact: The executable produced by the build backend.
        release: Resolved release identifier, e.g. "v2.0.0" or "canary".
        auxiliary_files: Files to pack next to the executable, in archive order.
        output_dir: Working directory for this platform; staging happens in
            <output_dir>/_dist and the archive lands in <output_dir>.
        binary_name: Executable name inside the archive.
        source_date_epoch: Timestamp stamped on every entry.

    Returns:
        ReleaseArchive describing the file on disk.

    Raises:
        ArchiveError: On missing inputs or any I/O failure. Nothing partial is left.
    """
    platform = artifact.platform
    filename = platform.archive_filename(binary_name, release)
    archive_path = output_dir / filename
    staging_dir = output_dir / "_dist"

    _logger.info(
        "Packaging archive",
        extra={"platform": platform.slug, "release": release, "archive": filename},
    )

    try:
        ensure_directory(output_dir)
    except OSError as err:
        raise ArchiveError(f"Cannot create output directory {output_dir}: {err}") from err

    try:
        staged = stage_files(artifact, auxiliary_files, staging_dir, binary_name)
        try:
            write_archive(staged, archive_path, platform.archive_format, source_date_epoch)
            digest = compute_sha256(archive_path)
            size = archive_path.stat().st_size
        except (OSError, ValueError, tarfile.TarError, zipfile.BadZipFile) as err:
            raise ArchiveError(f"Failed to write {filename}: {err}") from err

    except Exception:
        # Never leave a half-written archive where the publisher could pick it up.
        if archive_path.exists():
            archive_path.unlink()
            _logger.warning(
                "Removed partial archive after failure",
                extra={"archive": str(archive_path)},
            )
        raise

    finally:
        shutil.rmtree(staging_dir, ignore_errors=True)

    _logger.info(
        "Archive created",
        extra={
            "platform": platform.slug,
            "archive": filename,
            "size_bytes": size,
            "sha256": digest[:16] + "...",
        },
    )

    return ReleaseArchive(
        platform=platform,
        release=release,
        filename=filename,
        path=archive_path,
        sha256=digest,
        size_bytes=size,
    )


def list_archive_members(archive_path: Path) -> list[str]:
    """Entry names of a release archive, in stored order."""
    if archive_path.name.endswith(".zip"):
        with zipfile.ZipFile(archive_path) as zf:
            return zf.namelist()
    with tarfile.open(archive_path, mode="r:gz") as tar:
        return tar.getnames()
