# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Environment validation and host detection for hippo-release.

Checks that the machine meets the minimum requirements before anything runs,
and reports the host's OS family and architecture in the names the platform
matrix uses, so `unit` can default to "the platform I'm running on" the way a
CI runner job does.
"""

import platform
import socket
import sys
from typing import NamedTuple

MINIMUM_PYTHON_MAJOR = 3
MINIMUM_PYTHON_MINOR = 11

# platform.system() → OS family as CI runners report it
_OS_FAMILIES: dict[str, str] = {
    "Linux": "Linux",
    "Darwin": "macOS",
    "Windows": "Windows",
}

# platform.machine() → architecture name used in archive names
_ARCHITECTURES: dict[str, str] = {
    "x86_64": "amd64",
    "AMD64": "amd64",
    "amd64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "ARM64": "arm64",
}


class SystemInfo(NamedTuple):
    """Snapshot of the current system environment."""

    python_version: str
    platform: str
    architecture: str
    hostname: str


def get_python_version() -> tuple[int, int, int]:
    """Return the current Python version as a (major, minor, micro) tuple."""
    return sys.version_info[:3]


def check_minimum_python() -> None:
    """
    Verify we're running a supported Python.

    Raises:
        RuntimeError: If Python is older than the minimum.
    """
    major, minor, _ = get_python_version()
    if major < MINIMUM_PYTHON_MAJOR or (
        major == MINIMUM_PYTHON_MAJOR and minor < MINIMUM_PYTHON_MINOR
    ):
        raise RuntimeError(
            f"hippo-release requires Python {MINIMUM_PYTHON_MAJOR}.{MINIMUM_PYTHON_MINOR}+, "
            f"running {major}.{minor}"
        )


def detect_os_family() -> str:
    """Host OS family, e.g. 'Linux', 'macOS', 'Windows'. Unknown systems pass through."""
    system = platform.system()
    return _OS_FAMILIES.get(system, system)


def detect_architecture() -> str:
    """Host architecture, e.g. 'amd64'. Unknown machines pass through lowercased."""
    machine = platform.machine()
    return _ARCHITECTURES.get(machine, machine.lower())


def host_platform_slug() -> str:
    """'<os>-<arch>' of the machine we're on, e.g. 'linux-amd64'."""
    return f"{detect_os_family().lower()}-{detect_architecture()}"


def get_system_info() -> SystemInfo:
    return SystemInfo(
        python_version=platform.python_version(),
        platform=detect_os_family(),
        architecture=detect_architecture(),
        hostname=socket.gethostname(),
    )
