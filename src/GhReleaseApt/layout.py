# === NAVMAP v1 ===
# {
#   "module": "GhReleaseApt.layout",
#   "purpose": "Compute on-disk locations for pool fragments, per-architecture indexes, and manifests",
#   "sections": [
#     {"id": "repositoryid", "name": "RepositoryId", "anchor": "class-repositoryid", "kind": "class"},
#     {"id": "parse-repository", "name": "parse_repository", "anchor": "function-parse-repository", "kind": "function"},
#     {"id": "repositorylayout", "name": "RepositoryLayout", "anchor": "class-repositorylayout", "kind": "class"}
#   ]
# }
# === /NAVMAP ===

"""Path conventions for the generated APT repository.

Artifacts are stored flat per GitHub release rather than in Debian's
alphabetical pool layout::

    <output>/pool/<owner>/<repo>/<tag>/*.deb
    <output>/pool/<owner>/<repo>/<tag>/Packages
    <output>/dists/<suite>/<component>/binary-<arch>/Packages
    <output>/dists/<suite>/Release

Everything here is pure path arithmetic; no filesystem access happens.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from .errors import RepositoryFormatError

__all__ = [
    "INDEX_FILENAME",
    "COMPRESSED_INDEX_FILENAME",
    "RepositoryId",
    "RepositoryLayout",
    "parse_repository",
]

INDEX_FILENAME = "Packages"
COMPRESSED_INDEX_FILENAME = "Packages.xz"
RELEASE_FILENAME = "Release"
RELEASE_SIGNATURE_FILENAME = "Release.gpg"
INRELEASE_FILENAME = "InRelease"


@dataclass(slots=True, frozen=True)
class RepositoryId:
    """GitHub repository identity in ``owner/repo`` form."""

    owner: str
    repo: str

    def __str__(self) -> str:
        return f"{self.owner}/{self.repo}"


def parse_repository(identifier: str) -> RepositoryId:
    """Validate and split a repository identifier.

    Args:
        identifier: Repository in ``owner/repo`` format.

    Returns:
        Parsed :class:`RepositoryId`.

    Raises:
        RepositoryFormatError: If the identifier does not contain exactly one
            ``/`` separating two non-empty parts.

    Examples:
        >>> parse_repository("octo/tools")
        RepositoryId(owner='octo', repo='tools')
    """

    parts = identifier.strip().split("/")
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise RepositoryFormatError("Invalid repository format. Use owner/repo")
    return RepositoryId(owner=parts[0], repo=parts[1])


@dataclass(slots=True, frozen=True)
class RepositoryLayout:
    """Resolve repository paths for one output root, suite, and component."""

    output_dir: Path
    suite: str = "stable"
    component: str = "main"

    @property
    def pool_dir(self) -> Path:
        return self.output_dir / "pool"

    def release_dir(self, owner: str, repo: str, tag: str) -> Path:
        """Return the flat artifact directory for one GitHub release."""

        return self.pool_dir / owner / repo / tag

    def fragment_path(self, owner: str, repo: str, tag: str) -> Path:
        """Return the per-release ``Packages`` fragment acting as checksum record."""

        return self.release_dir(owner, repo, tag) / INDEX_FILENAME

    @property
    def dists_dir(self) -> Path:
        return self.output_dir / "dists"

    @property
    def suite_dir(self) -> Path:
        return self.dists_dir / self.suite

    @property
    def component_dir(self) -> Path:
        return self.suite_dir / self.component

    def arch_dir(self, architecture: str) -> Path:
        return self.component_dir / f"binary-{architecture}"

    def index_path(self, architecture: str) -> Path:
        return self.arch_dir(architecture) / INDEX_FILENAME

    def compressed_index_path(self, architecture: str) -> Path:
        return self.arch_dir(architecture) / COMPRESSED_INDEX_FILENAME

    @property
    def release_path(self) -> Path:
        return self.suite_dir / RELEASE_FILENAME

    @property
    def release_signature_path(self) -> Path:
        return self.suite_dir / RELEASE_SIGNATURE_FILENAME

    @property
    def inrelease_path(self) -> Path:
        return self.suite_dir / INRELEASE_FILENAME
