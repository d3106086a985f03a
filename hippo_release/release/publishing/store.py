# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Artifact store and publisher.

All platform jobs publish into one logical artifact group ("hippo"), and the
checksum stage later reads that whole group back. The store is an interface
(put / get / list / clear) so the pipeline doesn't care where the group lives; the
implementation shipped here keeps each group in a directory:

    <root>/<group>/hippo-v2.0.0-linux-amd64.tar.gz
    <root>/<group>/hippo-v2.0.0-windows-amd64.zip
    <root>/<group>/checksums-v2.0.0.txt

Concurrent jobs write distinct names, and every write is atomic (temp file +
rename), so no locking is needed between them.

Artifacts are immutable within a run. Re-publishing a name with identical
bytes is a no-op, which keeps re-runs of a deterministic job harmless.
Re-publishing a name with different bytes is a PublishError. A group belongs
to one run; a new run of a rolling release (canary) either gets its own group
or starts by clearing the old one.
"""

import logging
from pathlib import Path
from typing import Protocol

from hippo_release.logging.logger import get_logger
from hippo_release.release.exceptions import PublishError
from hippo_release.release.packaging.archiver import ReleaseArchive
from hippo_release.utils.filesystem import atomic_copy
from hippo_release.utils.hashing import compute_sha256

_logger: logging.Logger = get_logger(__name__)

DEFAULT_ARTIFACT_GROUP = "hippo"


class ArtifactStore(Protocol):
    """Shared, distinct-key artifact namespace for one logical group."""

    @property
    def group(self) -> str:
        ...

    def put(self, name: str, source: Path) -> Path:
        ...

    def get(self, name: str) -> Path:
        ...

    def list(self) -> list[str]:
        ...

    def clear(self) -> int:
        ...


def _validate_artifact_name(name: str) -> None:
    """Artifact names are bare file names; anything path-like is rejected."""
    if not name or name in {".", ".."}:
        raise PublishError(f"Invalid artifact name: {name!r}")
    if "/" in name or "\\" in name:
        raise PublishError(f"Artifact name must not contain path separators: {name!r}")
    if name.startswith("."):
        raise PublishError(f"Artifact name must not be hidden: {name!r}")


class FilesystemArtifactStore:
    """
    Artifact group backed by a directory.

    Hidden files (the atomic-write temp files among them) are never listed,
    so a reader can't observe an in-flight write.
    """

    def __init__(self, root: Path, group: str = DEFAULT_ARTIFACT_GROUP) -> None:
        _validate_artifact_name(group)
        self._root = root
        self._group = group

    @property
    def group(self) -> str:
        return self._group

    @property
    def directory(self) -> Path:
        return self._root / self._group

    def put(self, name: str, source: Path) -> Path:
        """
        Store a copy of `source` under `name`.

        Raises:
            PublishError: If the name is invalid, the source is missing, the
                name already holds different content, or the write fails.
        """
        _validate_artifact_name(name)
        if not source.is_file():
            raise PublishError(f"Cannot publish {name}: source file {source} not found")

        target = self.directory / name
        try:
            if target.exists():
                if compute_sha256(target) == compute_sha256(source):
                    _logger.info(
                        "Artifact already published with identical content",
                        extra={"group": self._group, "artifact": name},
                    )
                    return target
                raise PublishError(
                    f"Artifact {name} already exists in group {self._group!r} with different "
                    f"content. Published artifacts are immutable."
                )
            atomic_copy(source, target)
        except OSError as err:
            raise PublishError(f"Failed to publish {name} to group {self._group!r}: {err}") from err

        _logger.debug(
            "Artifact stored",
            extra={"group": self._group, "artifact": name, "path": str(target)},
        )
        return target

    def get(self, name: str) -> Path:
        """
        Path to a stored artifact.

        Raises:
            FileNotFoundError: If the group holds no artifact with that name.
            PublishError: If the name is not a bare file name.
        """
        _validate_artifact_name(name)
        target = self.directory / name
        if not target.is_file():
            raise FileNotFoundError(f"Artifact {name} not found in group {self._group!r}")
        return target

    def list(self) -> list[str]:
        """Names of all stored artifacts, sorted. An absent group is empty."""
        if not self.directory.is_dir():
            return []
        return sorted(
            p.name
            for p in self.directory.iterdir()
            if p.is_file() and not p.name.startswith(".")
        )

    def clear(self) -> int:
        """
        Remove every artifact in the group and return how many were removed.

        Raises:
            PublishError: If a file cannot be removed.
        """
        removed = 0
        for name in self.list():
            try:
                (self.directory / name).unlink()
            except OSError as err:
                raise PublishError(
                    f"Cannot clear {name} from group {self._group!r}: {err}"
                ) from err
            removed += 1

        if removed:
            _logger.info(
                "Artifact group cleared",
                extra={"group": self._group, "removed": removed},
            )
        return removed


def publish_archive(store: ArtifactStore, archive: ReleaseArchive) -> Path:
    """
    Publish one platform archive under its own file name, content unchanged.

    Raises:
        PublishError: If the store rejects the write, or the stored copy does
            not hash to what the archiver produced.
    """
    stored = store.put(archive.filename, archive.path)

    try:
        stored_digest = compute_sha256(stored)
    except OSError as err:
        raise PublishError(f"Cannot read back published {archive.filename}: {err}") from err
    if stored_digest != archive.sha256:
        raise PublishError(
            f"Published {archive.filename} does not match the packaged archive "
            f"(expected {archive.sha256[:16]}..., got {stored_digest[:16]}...)"
        )

    _logger.info(
        "Archive published",
        extra={
            "group": store.group,
            "archive": archive.filename,
            "platform": archive.platform.slug,
        },
    )
    return stored
