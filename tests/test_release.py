# === NAVMAP v1 ===
# {
#   "module": "tests.test_release",
#   "purpose": "Release manifest construction, rendering, and signing tests",
#   "sections": [
#     {"id": "build", "name": "Manifest building", "anchor": "BLD", "kind": "section"},
#     {"id": "render", "name": "Rendering", "anchor": "RND", "kind": "section"},
#     {"id": "sign", "name": "Signing", "anchor": "SGN", "kind": "section"}
#   ]
# }
# === /NAVMAP ===

"""Tests for the suite Release manifest."""

from __future__ import annotations

import hashlib
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from conftest import FakeSigner

from GhReleaseApt.errors import AssemblyError, SigningError
from GhReleaseApt.release import (
    ManifestChecksum,
    ReleaseManifest,
    build_manifest,
    discover_index_files,
    format_release_date,
    render_manifest,
    sign_manifest,
)

FIXED_DATE = datetime(2026, 1, 2, 3, 4, 5, 678000, tzinfo=timezone.utc)


def _write_index(suite_dir: Path, arch: str, text: str) -> Path:
    path = suite_dir / "main" / f"binary-{arch}" / "Packages"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(text.encode("utf-8"))
    return path


class TestBuildManifest:
    def test_checksums_match_file_contents(self, tmp_path: Path) -> None:
        amd = "Package: hello\nArchitecture: amd64\nDescription: café\n"
        arm = "Package: hello\nArchitecture: arm64\n"
        _write_index(tmp_path, "arm64", arm)
        _write_index(tmp_path, "amd64", amd)

        manifest = build_manifest(tmp_path, ["amd64", "arm64"], date=FIXED_DATE)

        assert manifest.checksums == (
            ManifestChecksum(
                sha256=hashlib.sha256(amd.encode("utf-8")).hexdigest(),
                size=len(amd.encode("utf-8")),
                path="main/binary-amd64/Packages",
            ),
            ManifestChecksum(
                sha256=hashlib.sha256(arm.encode("utf-8")).hexdigest(),
                size=len(arm.encode("utf-8")),
                path="main/binary-arm64/Packages",
            ),
        )

    def test_size_counts_encoded_bytes(self, tmp_path: Path) -> None:
        _write_index(tmp_path, "amd64", "é\n")

        (checksum,) = build_manifest(tmp_path, ["amd64"], date=FIXED_DATE).checksums

        assert checksum.size == 3

    def test_missing_root_gives_no_checksums(self, tmp_path: Path) -> None:
        manifest = build_manifest(tmp_path / "absent", ["amd64"], date=FIXED_DATE)

        assert manifest.checksums == ()

    def test_discovery_ignores_compressed_siblings(self, tmp_path: Path) -> None:
        index = _write_index(tmp_path, "amd64", "Package: a\n")
        index.with_name("Packages.xz").write_bytes(b"\xfd7zXZ")

        assert discover_index_files(tmp_path) == [index]

    def test_default_date_is_now(self, tmp_path: Path) -> None:
        before = datetime.now(timezone.utc)

        manifest = build_manifest(tmp_path, [])

        assert before - timedelta(seconds=1) <= manifest.date <= datetime.now(timezone.utc)


class TestRender:
    def test_render_orders_header_then_checksums(self) -> None:
        manifest = ReleaseManifest(
            suite="stable",
            architectures=("amd64", "arm64"),
            components=("main",),
            date=FIXED_DATE,
            checksums=(
                ManifestChecksum("aa", 10, "main/binary-amd64/Packages"),
                ManifestChecksum("bb", 20, "main/binary-arm64/Packages"),
            ),
        )

        assert render_manifest(manifest) == (
            "Suite: stable\n"
            "Architectures: amd64 arm64\n"
            "Components: main\n"
            "Date: 2026-01-02T03:04:05.678Z\n"
            "SHA256:\n"
            " aa 10 main/binary-amd64/Packages\n"
            " bb 20 main/binary-arm64/Packages\n"
        )

    def test_naive_dates_are_treated_as_utc(self) -> None:
        assert format_release_date(datetime(2026, 5, 6, 7, 8, 9)) == "2026-05-06T07:08:09.000Z"

    def test_offset_dates_are_converted_to_utc(self) -> None:
        moment = datetime(2026, 5, 6, 9, 0, tzinfo=timezone(timedelta(hours=2)))

        assert format_release_date(moment) == "2026-05-06T07:00:00.000Z"


class TestSignManifest:
    def test_produces_detached_and_clearsigned(self, tmp_path: Path) -> None:
        release = tmp_path / "Release"
        release.write_text("Suite: stable\n", encoding="utf-8")
        signer = FakeSigner()

        produced = sign_manifest(
            release,
            signer,
            detached_path=tmp_path / "Release.gpg",
            clearsigned_path=tmp_path / "InRelease",
        )

        assert produced == (tmp_path / "Release.gpg", tmp_path / "InRelease")
        assert [mode for mode, _ in signer.calls] == ["detached", "clearsign"]
        assert "Suite: stable" in (tmp_path / "InRelease").read_text(encoding="utf-8")

    def test_signer_failure_propagates(self, tmp_path: Path) -> None:
        release = tmp_path / "Release"
        release.write_text("Suite: stable\n", encoding="utf-8")

        with pytest.raises(SigningError):
            sign_manifest(
                release,
                FakeSigner(fail_on="clearsign"),
                detached_path=tmp_path / "Release.gpg",
                clearsigned_path=tmp_path / "InRelease",
            )

    def test_clearsign_failure_removes_detached_signature(self, tmp_path: Path) -> None:
        release = tmp_path / "Release"
        release.write_text("Suite: stable\n", encoding="utf-8")
        (tmp_path / "InRelease").write_text("previous", encoding="utf-8")

        with pytest.raises(SigningError):
            sign_manifest(
                release,
                FakeSigner(fail_on="clearsign"),
                detached_path=tmp_path / "Release.gpg",
                clearsigned_path=tmp_path / "InRelease",
            )

        assert sorted(path.name for path in tmp_path.iterdir()) == ["Release"]

    def test_signer_writes_to_staging_names(self, tmp_path: Path) -> None:
        release = tmp_path / "Release"
        release.write_text("Suite: stable\n", encoding="utf-8")
        seen = []

        class RecordingSigner(FakeSigner):
            def sign_detached(self, manifest_path: Path, output_path: Path) -> Path:
                seen.append(output_path.name)
                return super().sign_detached(manifest_path, output_path)

            def clearsign(self, manifest_path: Path, output_path: Path) -> Path:
                seen.append(output_path.name)
                return super().clearsign(manifest_path, output_path)

        sign_manifest(
            release,
            RecordingSigner(),
            detached_path=tmp_path / "Release.gpg",
            clearsigned_path=tmp_path / "InRelease",
        )

        assert seen == [".Release.gpg.tmp", ".InRelease.tmp"]
        assert sorted(path.name for path in tmp_path.iterdir()) == [
            "InRelease",
            "Release",
            "Release.gpg",
        ]

    def test_empty_manifest_is_rejected(self, tmp_path: Path) -> None:
        release = tmp_path / "Release"
        release.write_text("", encoding="utf-8")

        with pytest.raises(AssemblyError):
            sign_manifest(
                release,
                FakeSigner(),
                detached_path=tmp_path / "Release.gpg",
                clearsigned_path=tmp_path / "InRelease",
            )
