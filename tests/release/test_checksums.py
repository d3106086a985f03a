# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""Tests for checksum manifest aggregation, parsing and verification."""

import hashlib
from pathlib import Path

import pytest

from hippo_release.release.exceptions import AggregationError
from hippo_release.release.checksums.integrity import (
    aggregate_checksums,
    format_checksum_lines,
    manifest_filename,
    parse_checksum_file,
    verify_manifest,
)
from hippo_release.release.publishing.store import FilesystemArtifactStore

ARCHIVES = {
    "hippo-v2.0.0-linux-amd64.tar.gz": b"linux archive",
    "hippo-v2.0.0-macos-amd64.tar.gz": b"macos archive",
    "hippo-v2.0.0-windows-amd64.zip": b"windows archive",
}


@pytest.fixture()
def populated_store(tmp_path: Path) -> FilesystemArtifactStore:
    store = FilesystemArtifactStore(tmp_path / "artifacts", "hippo")
    src = tmp_path / "src"
    src.mkdir()
    for name, content in ARCHIVES.items():
        (src / name).write_bytes(content)
        store.put(name, src / name)
    return store


class TestAggregateChecksums:
    def test_manifest_lists_every_archive_sorted(
        self, populated_store: FilesystemArtifactStore, tmp_path: Path
    ) -> None:
        manifest = aggregate_checksums(populated_store, "v2.0.0", ARCHIVES, tmp_path / "work")

        assert manifest.filename == "checksums-v2.0.0.txt"
        lines = manifest.path.read_text(encoding="utf-8").splitlines()
        assert lines == [
            f"{hashlib.sha256(ARCHIVES[name]).hexdigest()}  {name}" for name in sorted(ARCHIVES)
        ]

    def test_manifest_is_published_into_the_group(
        self, populated_store: FilesystemArtifactStore, tmp_path: Path
    ) -> None:
        aggregate_checksums(populated_store, "v2.0.0", ARCHIVES, tmp_path / "work")
        assert "checksums-v2.0.0.txt" in populated_store.list()

    def test_manifest_bytes_end_with_single_newline(
        self, populated_store: FilesystemArtifactStore, tmp_path: Path
    ) -> None:
        manifest = aggregate_checksums(populated_store, "v2.0.0", ARCHIVES, tmp_path / "work")
        raw = manifest.path.read_bytes()
        assert raw.endswith(b".zip\n")
        assert b"\r" not in raw

    def test_missing_archive_raises(
        self, populated_store: FilesystemArtifactStore, tmp_path: Path
    ) -> None:
        expected = [*ARCHIVES, "hippo-v2.0.0-linux-arm64.tar.gz"]
        with pytest.raises(AggregationError, match="missing hippo-v2.0.0-linux-arm64"):
            aggregate_checksums(populated_store, "v2.0.0", expected, tmp_path / "work")
        assert "checksums-v2.0.0.txt" not in populated_store.list()

    def test_unexpected_archive_raises(
        self, populated_store: FilesystemArtifactStore, tmp_path: Path
    ) -> None:
        expected = sorted(ARCHIVES)[:2]
        with pytest.raises(AggregationError, match="unexpected hippo-v2.0.0-windows-amd64.zip"):
            aggregate_checksums(populated_store, "v2.0.0", expected, tmp_path / "work")

    def test_duplicate_expected_names_raise(
        self, populated_store: FilesystemArtifactStore, tmp_path: Path
    ) -> None:
        expected = [*ARCHIVES, "hippo-v2.0.0-linux-amd64.tar.gz"]
        with pytest.raises(AggregationError, match="same archive name: hippo-v2.0.0-linux-amd64"):
            aggregate_checksums(populated_store, "v2.0.0", expected, tmp_path / "work")
        assert "checksums-v2.0.0.txt" not in populated_store.list()

    def test_rerun_is_idempotent(
        self, populated_store: FilesystemArtifactStore, tmp_path: Path
    ) -> None:
        first = aggregate_checksums(populated_store, "v2.0.0", ARCHIVES, tmp_path / "work")
        content = first.path.read_bytes()
        second = aggregate_checksums(populated_store, "v2.0.0", ARCHIVES, tmp_path / "work")
        assert second.path.read_bytes() == content
        assert second.entries == first.entries


class TestParseChecksumFile:
    def test_roundtrip_with_formatter(self, tmp_path: Path) -> None:
        checksums = {"b.zip": "b" * 64, "a.tar.gz": "a" * 64}
        path = tmp_path / manifest_filename("canary")
        path.write_text(format_checksum_lines(checksums), encoding="utf-8")
        assert parse_checksum_file(path) == checksums

    def test_single_space_is_malformed(self, tmp_path: Path) -> None:
        path = tmp_path / "checksums-x.txt"
        path.write_text(f"{'a' * 64} a.zip\n", encoding="utf-8")
        with pytest.raises(ValueError, match="line 1"):
            parse_checksum_file(path)

    def test_short_digest_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "checksums-x.txt"
        path.write_text("abc123  a.zip\n", encoding="utf-8")
        with pytest.raises(ValueError, match="SHA256"):
            parse_checksum_file(path)

    def test_duplicate_entry_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "checksums-x.txt"
        path.write_text(f"{'a' * 64}  a.zip\n{'b' * 64}  a.zip\n", encoding="utf-8")
        with pytest.raises(ValueError, match="Duplicate"):
            parse_checksum_file(path)

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            parse_checksum_file(tmp_path / "nope.txt")


class TestVerifyManifest:
    def test_fresh_manifest_verifies(
        self, populated_store: FilesystemArtifactStore, tmp_path: Path
    ) -> None:
        aggregate_checksums(populated_store, "v2.0.0", ARCHIVES, tmp_path / "work")
        result = verify_manifest(populated_store, "v2.0.0")

        assert result.is_valid
        assert result.checked_count == 3

    def test_tampered_archive_detected(
        self, populated_store: FilesystemArtifactStore, tmp_path: Path
    ) -> None:
        aggregate_checksums(populated_store, "v2.0.0", ARCHIVES, tmp_path / "work")
        (populated_store.directory / "hippo-v2.0.0-linux-amd64.tar.gz").write_bytes(b"evil")

        result = verify_manifest(populated_store, "v2.0.0")
        assert not result.is_valid
        assert result.mismatches == ["hippo-v2.0.0-linux-amd64.tar.gz"]

    def test_deleted_archive_detected(
        self, populated_store: FilesystemArtifactStore, tmp_path: Path
    ) -> None:
        aggregate_checksums(populated_store, "v2.0.0", ARCHIVES, tmp_path / "work")
        (populated_store.directory / "hippo-v2.0.0-macos-amd64.tar.gz").unlink()

        result = verify_manifest(populated_store, "v2.0.0")
        assert result.missing_files == ["hippo-v2.0.0-macos-amd64.tar.gz"]
        assert result.checked_count == 2

    def test_unlisted_archive_detected(
        self, populated_store: FilesystemArtifactStore, tmp_path: Path
    ) -> None:
        aggregate_checksums(populated_store, "v2.0.0", ARCHIVES, tmp_path / "work")
        extra = tmp_path / "extra.tar.gz"
        extra.write_bytes(b"sneaky")
        populated_store.put("hippo-v2.0.0-linux-arm64.tar.gz", extra)

        result = verify_manifest(populated_store, "v2.0.0")
        assert result.unlisted_files == ["hippo-v2.0.0-linux-arm64.tar.gz"]
        assert not result.is_valid

    def test_missing_manifest_is_an_error(self, populated_store: FilesystemArtifactStore) -> None:
        result = verify_manifest(populated_store, "v2.0.0")
        assert not result.is_valid
        assert "not found" in result.errors[0]

    def test_path_like_entry_is_reported_not_raised(
        self, populated_store: FilesystemArtifactStore, tmp_path: Path
    ) -> None:
        aggregate_checksums(populated_store, "v2.0.0", ARCHIVES, tmp_path / "work")
        manifest = populated_store.directory / "checksums-v2.0.0.txt"
        with manifest.open("a", encoding="utf-8") as fh:
            fh.write(f"{'0' * 64}  ../escape.tar.gz\n")

        result = verify_manifest(populated_store, "v2.0.0")
        assert not result.is_valid
        assert result.checked_count == 3
        assert len(result.errors) == 1
        assert "../escape.tar.gz" in result.errors[0]
