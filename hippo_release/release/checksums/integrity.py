# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Checksum manifest generation and verification.

Once every platform job has published its archive, one manifest covering all
of them is written and published into the same artifact group:

    checksums-<release>.txt
        <sha256hex>  <archive filename>
        <sha256hex>  <archive filename>

One line per archive, two spaces between digest and name (GNU coreutils
sha256sum format, so `sha256sum -c` can check it), sorted by file name.

Before hashing anything the group is checked against the archive names the
run was supposed to publish. A group with archives missing, or with archives
nobody expected, raises AggregationError instead of producing a manifest that
looks complete but isn't.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Mapping

from hippo_release.logging.logger import get_logger
from hippo_release.release.exceptions import AggregationError, PublishError
from hippo_release.release.publishing.store import ArtifactStore
from hippo_release.utils.filesystem import atomic_write_bytes
from hippo_release.utils.hashing import compute_sha256, is_sha256_hex

_logger: logging.Logger = get_logger(__name__)

MANIFEST_PREFIX = "checksums-"
MANIFEST_SUFFIX = ".txt"


@dataclass(frozen=True)
class ChecksumManifest:
    """The terminal artifact of a run: one digest per published archive."""

    release: str
    filename: str
    path: Path
    entries: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of checking a published manifest against the artifact group."""

    is_valid: bool
    checked_count: int
    mismatches: list[str] = field(default_factory=list)
    missing_files: list[str] = field(default_factory=list)
    unlisted_files: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


def manifest_filename(release: str) -> str:
    """'checksums-<release>.txt'."""
    return f"{MANIFEST_PREFIX}{release}{MANIFEST_SUFFIX}"


def is_manifest_name(name: str) -> bool:
    return name.startswith(MANIFEST_PREFIX) and name.endswith(MANIFEST_SUFFIX)


def format_checksum_lines(checksums: Mapping[str, str]) -> str:
    """Render {filename: digest} as manifest text, sorted by filename."""
    lines = [f"{checksums[name]}  {name}" for name in sorted(checksums)]
    return "\n".join(lines) + "\n"


def check_archive_set(store: ArtifactStore, expected_archives: Iterable[str]) -> list[str]:
    """
    Make sure the group holds exactly the expected archives.

    Manifests already in the group (from an earlier run or another release
    in the same group) are not archives and are ignored.

    Returns:
        The archive names, sorted.

    Raises:
        AggregationError: If the expected names repeat, any expected archive
            is missing, or any unexpected archive is present.
    """
    names = list(expected_archives)
    expected = set(names)
    if len(names) != len(expected):
        duplicates = sorted(name for name in expected if names.count(name) > 1)
        raise AggregationError(
            f"Two platforms map to the same archive name: {', '.join(duplicates)}"
        )

    present = {name for name in store.list() if not is_manifest_name(name)}

    missing = sorted(expected - present)
    unexpected = sorted(present - expected)
    if missing or unexpected:
        _logger.error(
            "Artifact group does not match the expected archive set",
            extra={
                "group": store.group,
                "missing": missing,
                "unexpected": unexpected,
                "expected_count": len(expected),
                "present_count": len(present),
            },
        )
        problems = []
        if missing:
            problems.append(f"missing {', '.join(missing)}")
        if unexpected:
            problems.append(f"unexpected {', '.join(unexpected)}")
        raise AggregationError(
            f"Refusing to write a checksum manifest for group {store.group!r}: "
            + "; ".join(problems)
        )

    return sorted(expected)


def generate_checksums(store: ArtifactStore, archive_names: Iterable[str]) -> dict[str, str]:
    """
    Compute SHA256 for each named archive in the group.

    Raises:
        AggregationError: If an archive can't be read.
    """
    checksums: dict[str, str] = {}
    for name in sorted(archive_names):
        try:
            digest = compute_sha256(store.get(name))
        except OSError as err:
            raise AggregationError(f"Cannot read archive {name} for checksumming: {err}") from err
        checksums[name] = digest
        _logger.debug(
            "Computed checksum",
            extra={"file": name, "sha256": digest[:16] + "..."},
        )

    _logger.info(
        "Checksums generated",
        extra={"file_count": len(checksums), "group": store.group},
    )
    return checksums


def write_checksum_file(output_dir: Path, release: str, checksums: Mapping[str, str]) -> Path:
    """
    Write checksums-<release>.txt into output_dir.

    The content is encoded explicitly so line endings are "\\n" on every OS.
    """
    checksum_path = output_dir / manifest_filename(release)
    content = format_checksum_lines(checksums)
    atomic_write_bytes(checksum_path, content.encode("utf-8"))

    _logger.info(
        "Checksum file written",
        extra={"path": str(checksum_path), "entries": len(checksums)},
    )
    return checksum_path


def aggregate_checksums(
    store: ArtifactStore,
    release: str,
    expected_archives: Iterable[str],
    output_dir: Path,
) -> ChecksumManifest:
    """
    Hash every archive of the run and publish the checksum manifest.

    Args:
        store: The artifact group every platform job published into.
        release: Resolved release identifier.
        expected_archives: Archive names the run must have published.
        output_dir: Where the manifest is written before it is published.

    Returns:
        The published ChecksumManifest.

    Raises:
        AggregationError: Archive set incomplete or unexpected, or unreadable.
        PublishError: The store rejected the manifest.
    """
    archive_names = check_archive_set(store, expected_archives)
    checksums = generate_checksums(store, archive_names)

    try:
        local_path = write_checksum_file(output_dir, release, checksums)
    except OSError as err:
        raise AggregationError(f"Cannot write checksum manifest: {err}") from err

    filename = manifest_filename(release)
    published = store.put(filename, local_path)

    _logger.info(
        "Checksum manifest published",
        extra={"group": store.group, "manifest": filename, "entries": len(checksums)},
    )
    return ChecksumManifest(
        release=release,
        filename=filename,
        path=published,
        entries=checksums,
    )


def parse_checksum_file(checksum_path: Path) -> dict[str, str]:
    """
    Parse a checksum manifest into {filename: sha256_hex}.

    Raises:
        FileNotFoundError: If file doesn't exist.
        ValueError: If a line is malformed or a file is listed twice.
    """
    if not checksum_path.is_file():
        raise FileNotFoundError(f"Checksum file not found: {checksum_path}")

    checksums: dict[str, str] = {}
    content = checksum_path.read_text(encoding="utf-8")

    for line_num, line in enumerate(content.splitlines(), start=1):
        if not line.strip():
            continue
        parts = line.split("  ", maxsplit=1)
        if len(parts) != 2:
            raise ValueError(
                f"Invalid checksum format at line {line_num}: expected "
                f"'<sha256>  <filename>', got: {line!r}"
            )
        sha256_hex, filename = parts
        if not is_sha256_hex(sha256_hex):
            raise ValueError(
                f"Invalid SHA256 digest at line {line_num}: {sha256_hex!r}"
            )
        if filename in checksums:
            raise ValueError(f"Duplicate entry for {filename} at line {line_num}")
        checksums[filename] = sha256_hex

    return checksums


def verify_manifest(store: ArtifactStore, release: str) -> VerificationResult:
    """
    Check a published manifest against the archives in the group.

    Reports every mismatch, every listed-but-missing archive, and every
    archive in the group the manifest does not cover, not just the first
    problem found.
    """
    filename = manifest_filename(release)
    try:
        manifest_path = store.get(filename)
    except FileNotFoundError:
        return VerificationResult(
            is_valid=False,
            checked_count=0,
            errors=[f"{filename} not found in group {store.group!r}"],
        )

    try:
        expected = parse_checksum_file(manifest_path)
    except ValueError as err:
        return VerificationResult(
            is_valid=False,
            checked_count=0,
            errors=[f"Failed to parse {filename}: {err}"],
        )

    mismatches: list[str] = []
    missing_files: list[str] = []
    errors: list[str] = []
    checked = 0

    for name, expected_hash in sorted(expected.items()):
        try:
            actual_hash = compute_sha256(store.get(name))
        except FileNotFoundError:
            missing_files.append(name)
            _logger.error("File missing during verification", extra={"file": name})
            continue
        except PublishError as err:
            # A listed name that can never be an artifact, e.g. "../x.tar.gz".
            errors.append(f"Invalid entry {name!r} in {filename}: {err}")
            _logger.error("Invalid manifest entry", extra={"file": name, "error": str(err)})
            continue

        checked += 1
        if actual_hash != expected_hash:
            mismatches.append(name)
            _logger.error(
                "Checksum mismatch",
                extra={
                    "file": name,
                    "expected": expected_hash[:16] + "...",
                    "actual": actual_hash[:16] + "...",
                },
            )

    # Archives of this release that the manifest doesn't mention.
    release_marker = f"-{release}-"
    unlisted = sorted(
        name
        for name in store.list()
        if not is_manifest_name(name) and release_marker in name and name not in expected
    )

    is_valid = not mismatches and not missing_files and not unlisted and not errors
    if is_valid:
        _logger.info("All checksums verified", extra={"checked_count": checked})
    else:
        _logger.error(
            "Checksum verification failed",
            extra={
                "mismatches": len(mismatches),
                "missing": len(missing_files),
                "unlisted": len(unlisted),
                "errors": len(errors),
            },
        )

    return VerificationResult(
        is_valid=is_valid,
        checked_count=checked,
        mismatches=mismatches,
        missing_files=missing_files,
        unlisted_files=unlisted,
        errors=errors,
    )
