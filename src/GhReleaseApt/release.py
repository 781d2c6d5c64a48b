# === NAVMAP v1 ===
# {
#   "module": "GhReleaseApt.release",
#   "purpose": "Build, render, and sign the suite Release manifest",
#   "sections": [
#     {"id": "manifestchecksum", "name": "ManifestChecksum", "anchor": "class-manifestchecksum", "kind": "class"},
#     {"id": "releasemanifest", "name": "ReleaseManifest", "anchor": "class-releasemanifest", "kind": "class"},
#     {"id": "discover-index-files", "name": "discover_index_files", "anchor": "function-discover-index-files", "kind": "function"},
#     {"id": "checksum-index-file", "name": "_checksum_index_file", "anchor": "function-checksum-index-file", "kind": "function"},
#     {"id": "format-date", "name": "format_release_date", "anchor": "function-format-release-date", "kind": "function"},
#     {"id": "build-manifest", "name": "build_manifest", "anchor": "function-build-manifest", "kind": "function"},
#     {"id": "render-manifest", "name": "render_manifest", "anchor": "function-render-manifest", "kind": "function"},
#     {"id": "sign-manifest", "name": "sign_manifest", "anchor": "function-sign-manifest", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Release manifest construction.

The manifest lists suite metadata followed by a ``SHA256:`` section with one
line per per-architecture ``Packages`` file::

    Suite: stable
    Architectures: amd64 arm64
    Components: main
    Date: 2026-01-01T00:00:00.000Z
    SHA256:
     <hex> <size> main/binary-amd64/Packages

Digests are computed over the decoded text of each index (the content APT
will actually receive) and the file list comes from a fresh scan of the
suite directory on every run, sorted so that unchanged inputs always produce
the same line order.
"""

from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from .checksums import sha256_text
from .errors import AssemblyError, SigningError
from .layout import INDEX_FILENAME
from .services import SigningService

__all__ = [
    "ManifestChecksum",
    "ReleaseManifest",
    "discover_index_files",
    "format_release_date",
    "build_manifest",
    "render_manifest",
    "sign_manifest",
]

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class ManifestChecksum:
    """One ``SHA256:`` line of the manifest."""

    sha256: str
    size: int
    path: str

    def render(self) -> str:
        return f" {self.sha256} {self.size} {self.path}"


@dataclass(slots=True, frozen=True)
class ReleaseManifest:
    """In-memory Release manifest, rebuilt from scratch on every assemble."""

    suite: str
    architectures: Tuple[str, ...]
    components: Tuple[str, ...]
    date: datetime
    checksums: Tuple[ManifestChecksum, ...]


def discover_index_files(root: Path, index_name: str = INDEX_FILENAME) -> List[Path]:
    """Return every file named ``index_name`` below ``root`` in path order."""

    if not root.is_dir():
        return []
    found = [path for path in root.rglob(index_name) if path.is_file()]
    return sorted(found, key=lambda path: path.relative_to(root).as_posix())


def _checksum_index_file(path: Path, root: Path) -> ManifestChecksum:
    # newline="" keeps line endings untouched so the digest matches the served bytes.
    with path.open("r", encoding="utf-8", newline="") as handle:
        text = handle.read()
    return ManifestChecksum(
        sha256=sha256_text(text),
        size=len(text.encode("utf-8")),
        path=path.relative_to(root).as_posix(),
    )


def format_release_date(moment: datetime) -> str:
    """Format ``moment`` as an ISO-8601 UTC instant with millisecond precision."""

    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    utc = moment.astimezone(timezone.utc)
    return utc.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_manifest(
    release_root: Path,
    architectures: Sequence[str],
    *,
    suite: str = "stable",
    components: Sequence[str] = ("main",),
    date: Optional[datetime] = None,
    max_workers: int = 4,
) -> ReleaseManifest:
    """Checksum every per-architecture index below ``release_root``.

    Args:
        release_root: Suite directory (``dists/<suite>``); checksum paths are
            relative to it.
        architectures: Architecture names in the order they should be listed.
        suite: Suite name.
        components: Component names.
        date: Manifest timestamp, defaults to now.
        max_workers: Upper bound on files hashed concurrently.
    """

    files = discover_index_files(release_root)
    if files:
        workers = max(1, min(max_workers, len(files)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="ghapt-digest") as executor:
            checksums = tuple(
                executor.map(lambda path: _checksum_index_file(path, release_root), files)
            )
    else:
        checksums = ()
    logger.debug(
        "release checksums computed",
        extra={"stage": "release", "files": [entry.path for entry in checksums]},
    )
    return ReleaseManifest(
        suite=suite,
        architectures=tuple(architectures),
        components=tuple(components),
        date=date or datetime.now(timezone.utc),
        checksums=checksums,
    )


def render_manifest(manifest: ReleaseManifest) -> str:
    """Render ``manifest`` as Release file text with a trailing newline."""

    lines = [
        f"Suite: {manifest.suite}",
        f"Architectures: {' '.join(manifest.architectures)}",
        f"Components: {' '.join(manifest.components)}",
        f"Date: {format_release_date(manifest.date)}",
        "SHA256:",
    ]
    lines.extend(entry.render() for entry in manifest.checksums)
    return "\n".join(lines) + "\n"


def sign_manifest(
    release_path: Path,
    signer: SigningService,
    *,
    detached_path: Path,
    clearsigned_path: Path,
) -> Tuple[Path, Path]:
    """Produce the detached (``Release.gpg``) and clear-signed (``InRelease``) artifacts.

    Both signatures are written under temporary names and moved into place
    only once both exist, so a failure never leaves one signature beside the
    manifest.  Any failure is raised and the caller must treat the assembly
    as incomplete.
    """

    if not release_path.is_file() or release_path.stat().st_size == 0:
        raise AssemblyError(f"Release manifest missing or empty: {release_path}")
    staged = (_staging_path(detached_path), _staging_path(clearsigned_path))
    try:
        detached = _check_signature(signer.sign_detached(release_path, staged[0]), "detached")
        clearsigned = _check_signature(signer.clearsign(release_path, staged[1]), "clearsign")
        os.replace(detached, detached_path)
        os.replace(clearsigned, clearsigned_path)
    except Exception:
        for path in (*staged, detached_path, clearsigned_path):
            path.unlink(missing_ok=True)
        raise
    for mode, path in (("detached", detached_path), ("clearsign", clearsigned_path)):
        logger.info(f"Created {path}", extra={"stage": "sign", "mode": mode, "path": str(path)})
    return detached_path, clearsigned_path


def _staging_path(path: Path) -> Path:
    return path.with_name(f".{path.name}.tmp")


def _check_signature(produced: Path, mode: str) -> Path:
    if not produced.is_file() or produced.stat().st_size == 0:
        raise SigningError(f"Signer produced no {mode} signature at {produced}")
    return produced
