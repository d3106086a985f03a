# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""Tests for the filesystem artifact store and archive publishing."""

import dataclasses
from pathlib import Path

import pytest

from hippo_release.release.build.driver import BuildArtifact
from hippo_release.release.exceptions import PublishError
from hippo_release.release.packaging.archiver import ReleaseArchive, create_archive
from hippo_release.release.platforms.targets import PlatformTarget
from hippo_release.release.publishing.store import FilesystemArtifactStore, publish_archive


@pytest.fixture()
def store(tmp_path: Path) -> FilesystemArtifactStore:
    return FilesystemArtifactStore(tmp_path / "artifacts", "hippo")


def _source(tmp_path: Path, name: str, content: bytes) -> Path:
    path = tmp_path / "src" / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    return path


class TestFilesystemArtifactStore:
    def test_put_then_get(self, store: FilesystemArtifactStore, tmp_path: Path) -> None:
        source = _source(tmp_path, "a.zip", b"archive bytes")
        stored = store.put("a.zip", source)

        assert stored == store.directory / "a.zip"
        assert store.get("a.zip").read_bytes() == b"archive bytes"

    def test_list_is_sorted_and_skips_hidden(
        self, store: FilesystemArtifactStore, tmp_path: Path
    ) -> None:
        store.put("b.tar.gz", _source(tmp_path, "b.tar.gz", b"b"))
        store.put("a.zip", _source(tmp_path, "a.zip", b"a"))
        (store.directory / ".hippo_tmp_x.tmp").write_bytes(b"in flight")

        assert store.list() == ["a.zip", "b.tar.gz"]

    def test_absent_group_lists_empty(self, store: FilesystemArtifactStore) -> None:
        assert store.list() == []

    def test_get_missing_raises(self, store: FilesystemArtifactStore) -> None:
        with pytest.raises(FileNotFoundError):
            store.get("nope.zip")

    def test_republish_identical_is_noop(
        self, store: FilesystemArtifactStore, tmp_path: Path
    ) -> None:
        source = _source(tmp_path, "a.zip", b"same")
        first = store.put("a.zip", source)
        second = store.put("a.zip", source)
        assert first == second
        assert store.list() == ["a.zip"]

    def test_republish_different_content_raises(
        self, store: FilesystemArtifactStore, tmp_path: Path
    ) -> None:
        store.put("a.zip", _source(tmp_path, "a.zip", b"first"))
        other = _source(tmp_path, "other.zip", b"second")

        with pytest.raises(PublishError, match="immutable"):
            store.put("a.zip", other)
        assert store.get("a.zip").read_bytes() == b"first"

    def test_clear_allows_new_content_under_same_name(
        self, store: FilesystemArtifactStore, tmp_path: Path
    ) -> None:
        store.put("a.zip", _source(tmp_path, "a.zip", b"first"))
        store.put("b.tar.gz", _source(tmp_path, "b.tar.gz", b"b"))

        assert store.clear() == 2
        assert store.list() == []

        store.put("a.zip", _source(tmp_path, "other.zip", b"second"))
        assert store.get("a.zip").read_bytes() == b"second"

    def test_clear_absent_group_removes_nothing(self, store: FilesystemArtifactStore) -> None:
        assert store.clear() == 0

    def test_missing_source_raises(self, store: FilesystemArtifactStore, tmp_path: Path) -> None:
        with pytest.raises(PublishError, match="not found"):
            store.put("a.zip", tmp_path / "ghost.zip")

    @pytest.mark.parametrize("name", ["", "..", "sub/a.zip", "sub\\a.zip", ".hidden"])
    def test_path_like_names_rejected(
        self, store: FilesystemArtifactStore, tmp_path: Path, name: str
    ) -> None:
        with pytest.raises(PublishError):
            store.put(name, _source(tmp_path, "a.zip", b"x"))


class TestPublishArchive:
    def _archive(
        self, tmp_path: Path, platform: PlatformTarget, auxiliary_files: list[Path]
    ) -> ReleaseArchive:
        exe = tmp_path / "build" / f"hippo{platform.executable_suffix}"
        exe.parent.mkdir(parents=True, exist_ok=True)
        exe.write_bytes(b"hippo binary")
        return create_archive(
            BuildArtifact(platform=platform, path=exe), "v2.0.0", auxiliary_files, tmp_path / "work"
        )

    def test_published_under_own_name_unchanged(
        self,
        store: FilesystemArtifactStore,
        tmp_path: Path,
        windows_amd64: PlatformTarget,
        auxiliary_files: list[Path],
    ) -> None:
        archive = self._archive(tmp_path, windows_amd64, auxiliary_files)
        stored = publish_archive(store, archive)

        assert stored.name == "hippo-v2.0.0-windows-amd64.zip"
        assert stored.read_bytes() == archive.path.read_bytes()

    def test_digest_mismatch_raises(
        self,
        store: FilesystemArtifactStore,
        tmp_path: Path,
        linux_amd64: PlatformTarget,
        auxiliary_files: list[Path],
    ) -> None:
        archive = self._archive(tmp_path, linux_amd64, auxiliary_files)
        tampered = dataclasses.replace(archive, sha256="0" * 64)

        with pytest.raises(PublishError, match="does not match"):
            publish_archive(store, tampered)
