# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Platform targets and the per-OS-family packaging rules.

The platform matrix is data. The only thing that differs between platforms
is decided here, in one place, as a pure function of the OS family:

    Windows   → executable suffix ".exe", zip archive
    any other → no suffix,               gzip-compressed tar archive

Archive names use the OS family lowercased, whatever case the matrix or the
runner reports it in ("macOS" → "macos"), so file names are stable across
tools.
"""

import enum
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Iterable, Mapping, Optional

if TYPE_CHECKING:
    from hippo_release.config.schema import PlatformConfig

WINDOWS_FAMILY = "windows"
WINDOWS_EXECUTABLE_SUFFIX = ".exe"


class ArchiveFormat(enum.Enum):
    """Container format of a release archive, with its file extension as value."""

    TAR_GZ = "tar.gz"
    ZIP = "zip"

    @property
    def extension(self) -> str:
        return self.value


def normalize_os_family(os_family: str) -> str:
    """Lowercase and strip an OS family name for use in file names."""
    return os_family.strip().lower()


def is_windows(os_family: str) -> bool:
    return normalize_os_family(os_family) == WINDOWS_FAMILY


def executable_suffix_for(os_family: str) -> str:
    """'.exe' for Windows, empty otherwise."""
    return WINDOWS_EXECUTABLE_SUFFIX if is_windows(os_family) else ""


def archive_format_for(os_family: str) -> ArchiveFormat:
    """Zip for Windows, gzip-compressed tar for everything else."""
    return ArchiveFormat.ZIP if is_windows(os_family) else ArchiveFormat.TAR_GZ


@dataclass(frozen=True)
class PlatformTarget:
    """
    One (OS family, architecture) pair the pipeline builds and packages for.

    `env` holds build environment overrides for this platform only; `target`
    is an optional target triple for backends that cross-compile.
    """

    os_family: str
    arch: str
    env: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}), hash=False)
    target: Optional[str] = None

    def __post_init__(self) -> None:
        if not normalize_os_family(self.os_family):
            raise ValueError("os_family must not be empty")
        if not self.arch.strip():
            raise ValueError("arch must not be empty")
        # Freeze the mapping so a shared target can't be mutated by one job.
        object.__setattr__(self, "env", MappingProxyType(dict(self.env)))

    @property
    def os_slug(self) -> str:
        return normalize_os_family(self.os_family)

    @property
    def slug(self) -> str:
        """'<os>-<arch>', e.g. 'linux-amd64'."""
        return f"{self.os_slug}-{self.arch}"

    @property
    def executable_suffix(self) -> str:
        return executable_suffix_for(self.os_family)

    @property
    def archive_format(self) -> ArchiveFormat:
        return archive_format_for(self.os_family)

    def executable_name(self, binary_name: str) -> str:
        return f"{binary_name}{self.executable_suffix}"

    def archive_basename(self, binary_name: str, release: str) -> str:
        """'<binary>-<release>-<os>-<arch>', without extension."""
        return f"{binary_name}-{release}-{self.os_slug}-{self.arch}"

    def archive_filename(self, binary_name: str, release: str) -> str:
        return f"{self.archive_basename(binary_name, release)}.{self.archive_format.extension}"

    def template_values(self, binary_name: str) -> dict[str, str]:
        """Placeholders available to build command and artifact path templates."""
        return {
            "os": self.os_slug,
            "arch": self.arch,
            "target": self.target or "",
            "binary": binary_name,
            "extension": self.executable_suffix,
        }


def platform_from_config(entry: "PlatformConfig") -> PlatformTarget:
    return PlatformTarget(
        os_family=entry.os,
        arch=entry.arch,
        env=entry.env,
        target=entry.target,
    )


def platforms_from_config(entries: Iterable["PlatformConfig"]) -> list[PlatformTarget]:
    """Turn the configured matrix into PlatformTargets, keeping matrix order."""
    return [platform_from_config(entry) for entry in entries]


def find_platform(platforms: Iterable[PlatformTarget], slug: str) -> PlatformTarget:
    """
    Look up a platform by its '<os>-<arch>' slug (case-insensitive on the OS part).

    Raises:
        KeyError: If no platform in the matrix has that slug.
    """
    wanted = slug.strip()
    os_part, _, arch_part = wanted.partition("-")
    wanted = f"{normalize_os_family(os_part)}-{arch_part}"
    for platform in platforms:
        if platform.slug == wanted:
            return platform
    raise KeyError(f"No platform '{slug}' in the configured matrix")


def expected_archive_names(
    platforms: Iterable[PlatformTarget], binary_name: str, release: str
) -> list[str]:
    """Archive file names one full run must publish, sorted."""
    return sorted(p.archive_filename(binary_name, release) for p in platforms)
