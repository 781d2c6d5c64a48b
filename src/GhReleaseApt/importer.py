# === NAVMAP v1 ===
# {
#   "module": "GhReleaseApt.importer",
#   "purpose": "Import the .deb assets of a GitHub release into the pool and refresh its fragment",
#   "sections": [
#     {"id": "releasesource", "name": "ReleaseSource", "anchor": "class-releasesource", "kind": "protocol"},
#     {"id": "importresult", "name": "ImportResult", "anchor": "class-importresult", "kind": "class"},
#     {"id": "import-release", "name": "import_release", "anchor": "function-import-release", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Release import pipeline (the ``import`` subcommand).

Steps: resolve the release, keep its ``.deb`` assets, compare them with the
checksum record in ``pool/<owner>/<repo>/<tag>/Packages``, download what
changed, and regenerate the fragment when anything was fetched.  Re-running
against an unchanged release performs no downloads and leaves the fragment
untouched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Protocol, Tuple

from .checksums import load_checksum_index
from .dpkg import IndexScanner
from .errors import NoAssetsError
from .layout import RepositoryId
from .logging_utils import LOGGER_NAME, generate_correlation_id
from .planning import ByteSource, RemoteAsset, materialize_plan, plan_sync
from .settings import AptSettings

__all__ = ["ReleaseSource", "ImportResult", "import_release"]


class ReleaseSource(ByteSource, Protocol):
    """Remote collaborator: list release assets and stream their bytes."""

    def list_release_assets(
        self, repository: RepositoryId, tag: Optional[str] = None
    ) -> Tuple[str, List[RemoteAsset]]: ...


@dataclass(slots=True, frozen=True)
class ImportResult:
    """Summary of one import run."""

    repository: RepositoryId
    tag: str
    release_dir: Path
    fragment_path: Path
    artifacts: Tuple[Path, ...]
    fetched: Tuple[str, ...]
    skipped: Tuple[str, ...]
    rescanned: bool


def import_release(
    repository: RepositoryId,
    *,
    settings: AptSettings,
    source: ReleaseSource,
    scanner: IndexScanner,
    tag: Optional[str] = None,
    logger: Optional[logging.Logger] = None,
) -> ImportResult:
    """Bring the pool directory of one release up to date.

    Args:
        repository: GitHub repository to import from.
        settings: Resolved settings (output root, concurrency).
        source: Release lookup and byte transfer collaborator.
        scanner: Fragment generator for the release directory.
        tag: Release tag; the latest release when omitted.
        logger: Optional logger override.

    Returns:
        :class:`ImportResult` describing what was fetched and skipped.

    Raises:
        NoAssetsError: The release has no ``.deb`` assets.
        AssetFetchError: A download failed; the run stops there.
    """

    log = logger or logging.getLogger(LOGGER_NAME)
    adapter = logging.LoggerAdapter(log, extra={"correlation_id": generate_correlation_id()})
    layout = settings.layout()

    adapter.info(f"Fetching {'release ' + tag if tag else 'latest release'} for {repository}...")
    tag_name, assets = source.list_release_assets(repository, tag)
    adapter.info(f"Found release: {tag_name}")
    if not assets:
        raise NoAssetsError(f"No .deb assets found in release {tag_name} of {repository}")

    release_dir = layout.release_dir(repository.owner, repository.repo, tag_name)
    fragment_path = layout.fragment_path(repository.owner, repository.repo, tag_name)
    checksum_index = load_checksum_index(fragment_path)
    plan = plan_sync(assets, checksum_index, release_dir)
    adapter.info(
        f"Planned {len(plan.to_fetch)} download(s), {len(plan.to_skip)} unchanged asset(s)"
    )

    artifacts = materialize_plan(plan, source, max_workers=settings.max_concurrent_downloads)

    rescan = bool(plan.to_fetch) or not fragment_path.is_file()
    if rescan:
        adapter.info("Generating Packages file...")
        scanner.scan(layout.output_dir, release_dir, fragment_path)
    else:
        adapter.info(f"Packages file is current: {fragment_path}")

    return ImportResult(
        repository=repository,
        tag=tag_name,
        release_dir=release_dir,
        fragment_path=fragment_path,
        artifacts=tuple(artifacts),
        fetched=tuple(decision.asset.name for decision in plan.to_fetch),
        skipped=tuple(decision.asset.name for decision in plan.to_skip),
        rescanned=rescan,
    )
