# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Type-safe configuration schemas for hippo-release.

One frozen pydantic model per config section. Frozen means the config cannot
change once loaded; every platform job running in parallel reads the same
object, so mutation would be a bug.

The models use pydantic v2's ConfigDict with:
  - frozen=True: immutability after construction
  - extra="forbid": unknown fields cause immediate failure
  - validate_default=True: even defaults get type-checked

The platform matrix is plain data. Which archive format and executable suffix
a platform gets is not configured here; it is derived from the OS family by
hippo_release.release.platforms.targets. A declared `extension` is accepted
only when it agrees with that derivation.
"""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from hippo_release.release.platforms.targets import executable_suffix_for, normalize_os_family

DEFAULT_SOURCE_DATE_EPOCH = 315_532_800  # 1980-01-01T00:00:00Z, earliest time zip can store


class GlobalConfig(BaseModel):
    """
    Cross-cutting settings: schema version and observability.

    This is the only required section; everything else has defaults that
    reproduce the stock hippo release workflow.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    config_version: str = Field(
        description="Schema version for compatibility tracking, e.g. '1.0.0'"
    )
    log_level: str = Field(
        default="INFO",
        description="One of DEBUG, INFO, WARNING, ERROR, CRITICAL",
    )
    log_file: Optional[str] = Field(
        default=None,
        description="Optional path for file-based log output",
    )

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        upper = value.upper()
        if upper not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {value}")
        return upper


class ReleaseConfig(BaseModel):
    """How archives are named and what goes inside them."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    binary_name: str = Field(
        default="hippo",
        min_length=1,
        description="Executable name inside the archive and first segment of archive names",
    )
    mainline_branch: str = Field(
        default="main",
        min_length=1,
        description="Branch whose head push produces a rolling release",
    )
    canary_label: str = Field(
        default="canary",
        min_length=1,
        description="Release identifier used for mainline pushes",
    )
    auxiliary_files: list[str] = Field(
        default_factory=lambda: ["README.md", "LICENSE"],
        description="Files packed next to the executable, in archive order",
    )
    source_date_epoch: int = Field(
        default=DEFAULT_SOURCE_DATE_EPOCH,
        ge=DEFAULT_SOURCE_DATE_EPOCH,
        description="Fixed timestamp stamped on every archive entry so archives are reproducible",
    )
    max_workers: Optional[int] = Field(
        default=None,
        ge=1,
        le=64,
        description="Concurrent platform jobs; None means one per platform",
    )

    @field_validator("binary_name", "canary_label")
    @classmethod
    def _check_filename_safe(cls, value: str) -> str:
        if "/" in value or "\\" in value or any(c.isspace() for c in value):
            raise ValueError(f"{value!r} cannot be embedded in a file name")
        return value


class PlatformConfig(BaseModel):
    """
    One entry of the platform matrix.

    `os` is the OS family the way CI runners report it (Linux, macOS,
    Windows). Case does not matter; archive names always use it lowercased.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    os: str = Field(min_length=1, description="Operating-system family, e.g. Linux, macOS, Windows")
    arch: str = Field(min_length=1, description="CPU architecture, e.g. amd64")
    extension: Optional[str] = Field(
        default=None,
        description="Executable suffix; must match the OS family ('.exe' for Windows, '' otherwise)",
    )
    target: Optional[str] = Field(
        default=None,
        description="Target triple handed to the build backend, e.g. x86_64-pc-windows-msvc",
    )
    env: dict[str, str] = Field(
        default_factory=dict,
        description="Environment overrides applied only to this platform's build",
    )

    @model_validator(mode="after")
    def _check_extension(self) -> "PlatformConfig":
        if self.extension is not None and self.extension != executable_suffix_for(self.os):
            raise ValueError(
                f"Platform {self.os}/{self.arch} declares extension {self.extension!r} "
                f"but OS family {self.os!r} requires {executable_suffix_for(self.os)!r}"
            )
        return self


def _default_platforms() -> list[PlatformConfig]:
    return [
        PlatformConfig(os="Linux", arch="amd64"),
        PlatformConfig(os="macOS", arch="amd64"),
        PlatformConfig(os="Windows", arch="amd64"),
    ]


class BuildConfig(BaseModel):
    """
    How to obtain one executable per platform.

    `command` backend: run `command` (argv list, no shell) then pick up the
    executable at `artifact_path`. `prebuilt` backend: skip compilation and
    read an executable someone else already built from `artifact_path`.

    Both templates accept {os}, {arch}, {target}, {binary} and {extension}.
    {os} is the lowercased OS family.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    backend: Literal["command", "prebuilt"] = Field(default="command")
    command: list[str] = Field(
        default_factory=lambda: ["cargo", "build", "--all-features", "--release"],
        description="Build command as an argv list",
    )
    artifact_path: str = Field(
        default="target/release/{binary}{extension}",
        min_length=1,
        description="Where the backend leaves the executable, relative to working_directory",
    )
    working_directory: str = Field(
        default=".",
        description="Directory the build command runs in",
    )
    timeout_seconds: Optional[int] = Field(
        default=None,
        ge=1,
        description="Hard limit for one build; None leaves it to the environment",
    )

    @model_validator(mode="after")
    def _check_command(self) -> "BuildConfig":
        if self.backend == "command" and not self.command:
            raise ValueError("build.command must not be empty for the 'command' backend")
        return self


class ArtifactsConfig(BaseModel):
    """Where archives are staged and which shared group they are published to."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    root: str = Field(default="dist/artifacts", description="Root of the artifact store")
    group: str = Field(
        default="hippo",
        min_length=1,
        description="Logical artifact group every platform publishes into",
    )
    work_directory: str = Field(
        default="dist/work",
        description="Scratch space for staging and archive creation",
    )


class ReleasePipelineConfig(BaseModel):
    """
    Top-level config container.

    A file that only contains `global:` is valid and runs the stock
    three-platform matrix.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    global_config: GlobalConfig = Field(alias="global")
    release: ReleaseConfig = Field(default_factory=ReleaseConfig)
    platforms: list[PlatformConfig] = Field(default_factory=_default_platforms)
    build: BuildConfig = Field(default_factory=BuildConfig)
    artifacts: ArtifactsConfig = Field(default_factory=ArtifactsConfig)

    @model_validator(mode="after")
    def _check_platform_matrix(self) -> "ReleasePipelineConfig":
        if not self.platforms:
            raise ValueError("platforms must contain at least one entry")
        seen: set[tuple[str, str]] = set()
        for platform in self.platforms:
            key = (normalize_os_family(platform.os), platform.arch)
            if key in seen:
                raise ValueError(f"Duplicate platform entry: {platform.os}/{platform.arch}")
            seen.add(key)
        return self
