# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Shared pytest fixtures for hippo-release tests.

Fixtures here are available to every test file automatically: config files
(valid, invalid, broken), a fake project checkout with README and LICENSE,
and in-memory build backends that hand out pre-made executables.
"""

import textwrap
from pathlib import Path

import pytest

from hippo_release.release.exceptions import BuildError
from hippo_release.release.platforms.targets import PlatformTarget


@pytest.fixture()
def tmp_config_file(tmp_path: Path) -> Path:
    """The smallest config that passes schema validation."""
    config_content = textwrap.dedent("""\
        global:
          config_version: "1.0.0"
          log_level: "DEBUG"
    """)
    config_file = tmp_path / "test_config.yaml"
    config_file.write_text(config_content, encoding="utf-8")
    return config_file


@pytest.fixture()
def invalid_config_file(tmp_path: Path) -> Path:
    """A config file that's valid YAML but fails schema validation (missing config_version)."""
    config_content = textwrap.dedent("""\
        global:
          log_level: "INFO"
    """)
    config_file = tmp_path / "invalid_config.yaml"
    config_file.write_text(config_content, encoding="utf-8")
    return config_file


@pytest.fixture()
def broken_yaml_file(tmp_path: Path) -> Path:
    """A file that isn't valid YAML at all."""
    config_file = tmp_path / "broken.yaml"
    config_file.write_text("{{not: yaml: at: all:::", encoding="utf-8")
    return config_file


@pytest.fixture()
def project_dir(tmp_path: Path) -> Path:
    """A fake hippo checkout: README.md and LICENSE at the root."""
    root = tmp_path / "project"
    root.mkdir()
    (root / "README.md").write_text("# hippo\n", encoding="utf-8")
    (root / "LICENSE").write_text("Apache License 2.0\n", encoding="utf-8")
    return root


@pytest.fixture()
def auxiliary_files(project_dir: Path) -> list[Path]:
    return [project_dir / "README.md", project_dir / "LICENSE"]


@pytest.fixture()
def linux_amd64() -> PlatformTarget:
    return PlatformTarget(os_family="Linux", arch="amd64")


@pytest.fixture()
def macos_amd64() -> PlatformTarget:
    return PlatformTarget(os_family="macOS", arch="amd64")


@pytest.fixture()
def windows_amd64() -> PlatformTarget:
    return PlatformTarget(os_family="Windows", arch="amd64")


class FakeBackend:
    """
    Build backend that writes a small fake executable per platform.

    Platforms whose slug is in `failing` raise BuildError, like a broken
    toolchain would. `payload` goes into every executable, so two backends
    with different payloads stand for two different commits. Every call is
    recorded.
    """

    def __init__(
        self,
        output_dir: Path,
        failing: frozenset[str] = frozenset(),
        payload: str = "binary",
    ) -> None:
        self.output_dir = output_dir
        self.failing = failing
        self.payload = payload
        self.calls: list[str] = []

    def build(self, platform: PlatformTarget) -> Path:
        self.calls.append(platform.slug)
        if platform.slug in self.failing:
            raise BuildError(f"simulated compile error for {platform.slug}")
        exe = self.output_dir / platform.slug / f"hippo{platform.executable_suffix}"
        exe.parent.mkdir(parents=True, exist_ok=True)
        exe.write_bytes(f"{self.payload} for {platform.slug}".encode("utf-8"))
        return exe


@pytest.fixture()
def fake_backend(tmp_path: Path) -> FakeBackend:
    return FakeBackend(tmp_path / "builds")


@pytest.fixture()
def failing_windows_backend(tmp_path: Path) -> FakeBackend:
    return FakeBackend(tmp_path / "builds", failing=frozenset({"windows-amd64"}))
