# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Platform build driver.

Compiling hippo is delegated to a build backend. The pipeline only needs one
thing from it: a path to an executable for a given platform. Two backends
ship here:

  CommandBuildBackend  — runs a configured build command (cargo by default)
                         with the platform's environment overrides, then
                         picks the executable up from a path template.
  PrebuiltBuildBackend — for runs where the binaries were compiled elsewhere;
                         just finds the executable from a path template.

Commands run through subprocess.run with an argv list, never shell=True.
A failed build is fatal for that platform only, and is never retried.
"""

import logging
import os
import re
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Protocol, Sequence

from hippo_release.config.schema import BuildConfig
from hippo_release.logging.logger import get_logger
from hippo_release.release.exceptions import BuildError
from hippo_release.release.platforms.targets import PlatformTarget

_logger: logging.Logger = get_logger(__name__)

# Keep the tail of the compiler output in the error; full logs are in CI anyway.
_STDERR_TAIL_CHARS = 2000

# A command argument that is nothing but one placeholder, e.g. "{target}".
_BARE_PLACEHOLDER = re.compile(r"\{\w+\}")


@dataclass(frozen=True)
class BuildArtifact:
    """The compiled executable for one platform. The pipeline only reads it."""

    platform: PlatformTarget
    path: Path


class BuildBackend(Protocol):
    """Anything that can hand back an executable path for a platform."""

    def build(self, platform: PlatformTarget) -> Path:
        ...


def _render(template: str, values: Mapping[str, str]) -> str:
    try:
        return template.format(**values)
    except (KeyError, IndexError) as err:
        raise BuildError(f"Unknown placeholder in build template {template!r}: {err}") from err


def _build_environment(overrides: Mapping[str, str]) -> dict[str, str]:
    """Inherit the process environment, then apply this platform's overrides."""
    env = dict(os.environ)
    env.update(overrides)
    return env


class CommandBuildBackend:
    """
    Run a build command and return the executable it leaves behind.

    Both `command` arguments and `artifact_path` are templates; see
    PlatformTarget.template_values for the placeholders.
    """

    def __init__(
        self,
        command: Sequence[str],
        artifact_path: str,
        working_directory: Path,
        binary_name: str = "hippo",
        timeout_seconds: Optional[int] = None,
    ) -> None:
        if not command:
            raise ValueError("command must not be empty")
        self._command = list(command)
        self._artifact_path = artifact_path
        self._working_directory = working_directory
        self._binary_name = binary_name
        self._timeout_seconds = timeout_seconds

    def build(self, platform: PlatformTarget) -> Path:
        values = platform.template_values(self._binary_name)
        argv: list[str] = []
        for template in self._command:
            arg = _render(template, values)
            # A bare placeholder with no value, e.g. {target} unset, is dropped.
            # Literal empty arguments are passed through.
            if not arg and _BARE_PLACEHOLDER.fullmatch(template):
                continue
            argv.append(arg)

        _logger.info(
            "Build started",
            extra={"platform": platform.slug, "command": argv, "cwd": str(self._working_directory)},
        )
        start = time.monotonic()

        try:
            result = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                timeout=self._timeout_seconds,
                cwd=str(self._working_directory),
                env=_build_environment(platform.env),
                check=False,
            )
        except FileNotFoundError as err:
            raise BuildError(
                f"Build tool {argv[0]!r} not found for {platform.slug}; is the toolchain installed?"
            ) from err
        except subprocess.TimeoutExpired as err:
            raise BuildError(
                f"Build for {platform.slug} timed out after {self._timeout_seconds}s"
            ) from err
        except OSError as err:
            raise BuildError(f"Cannot start build for {platform.slug}: {err}") from err

        elapsed = time.monotonic() - start
        if result.returncode != 0:
            raise BuildError(
                f"Build for {platform.slug} exited with code {result.returncode}:\n"
                f"{result.stderr[-_STDERR_TAIL_CHARS:]}"
            )

        _logger.info(
            "Build finished",
            extra={"platform": platform.slug, "elapsed_seconds": round(elapsed, 3)},
        )
        return self._working_directory / _render(self._artifact_path, values)


class PrebuiltBuildBackend:
    """Find an executable that was compiled before the pipeline started."""

    def __init__(self, artifact_path: str, base_directory: Path, binary_name: str = "hippo") -> None:
        self._artifact_path = artifact_path
        self._base_directory = base_directory
        self._binary_name = binary_name

    def build(self, platform: PlatformTarget) -> Path:
        values = platform.template_values(self._binary_name)
        return self._base_directory / _render(self._artifact_path, values)


def create_backend(config: BuildConfig, binary_name: str, base_directory: Path) -> BuildBackend:
    """Instantiate the backend named in the build config."""
    working_directory = base_directory / config.working_directory
    if config.backend == "prebuilt":
        return PrebuiltBuildBackend(config.artifact_path, working_directory, binary_name)
    return CommandBuildBackend(
        command=config.command,
        artifact_path=config.artifact_path,
        working_directory=working_directory,
        binary_name=binary_name,
        timeout_seconds=config.timeout_seconds,
    )


def build_platform(backend: BuildBackend, platform: PlatformTarget) -> BuildArtifact:
    """
    Obtain the executable for one platform.

    Whatever the backend does, the result is checked here: the path it
    returns must be an existing regular file.

    Raises:
        BuildError: If the backend fails or produces no executable.
    """
    try:
        path = backend.build(platform)
    except BuildError:
        raise
    except OSError as err:
        raise BuildError(f"Build backend failed for {platform.slug}: {err}") from err

    if not path.is_file():
        raise BuildError(f"Build for {platform.slug} produced no executable at {path}")

    _logger.debug(
        "Executable located",
        extra={"platform": platform.slug, "path": str(path), "size_bytes": path.stat().st_size},
    )
    return BuildArtifact(platform=platform, path=path)
