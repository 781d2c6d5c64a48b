# === NAVMAP v1 ===
# {
#   "module": "GhReleaseApt",
#   "purpose": "Package initialization for GhReleaseApt",
#   "sections": [
#     {
#       "id": "getattr",
#       "name": "__getattr__",
#       "anchor": "function-getattr",
#       "kind": "function"
#     },
#     {
#       "id": "dir",
#       "name": "__dir__",
#       "anchor": "function-dir",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Public API for building APT repositories from GitHub release assets.

The facade exposes the control-file codec, the incremental sync planner, the
architecture grouper, and the Release manifest builder, together with the two
pipelines (``import_release`` and ``assemble_repository``) driven by the CLI.
Attributes are imported lazily so ``python -m GhReleaseApt --help`` stays fast.
"""

from __future__ import annotations

from importlib import import_module
from importlib import metadata as importlib_metadata
from typing import Any, Dict, Tuple

try:  # pragma: no cover - metadata may be unavailable during development
    __version__ = importlib_metadata.version("gh-release-apt")
except importlib_metadata.PackageNotFoundError:  # pragma: no cover - local source tree
    __version__ = "0.0.0"

_EXPORTS: Dict[str, Tuple[str, str]] = {
    "Entry": (".control", "Entry"),
    "parse_fragment": (".control", "parse_fragment"),
    "serialize_fragment": (".control", "serialize_fragment"),
    "extract_field": (".control", "extract_field"),
    "Digest": (".checksums", "Digest"),
    "parse_digest": (".checksums", "parse_digest"),
    "build_checksum_index": (".checksums", "build_checksum_index"),
    "RemoteAsset": (".planning", "RemoteAsset"),
    "SyncDecision": (".planning", "SyncDecision"),
    "SyncPlan": (".planning", "SyncPlan"),
    "plan_sync": (".planning", "plan_sync"),
    "ArchitectureGroups": (".grouping", "ArchitectureGroups"),
    "group_by_architecture": (".grouping", "group_by_architecture"),
    "ReleaseManifest": (".release", "ReleaseManifest"),
    "build_manifest": (".release", "build_manifest"),
    "render_manifest": (".release", "render_manifest"),
    "RepositoryLayout": (".layout", "RepositoryLayout"),
    "parse_repository": (".layout", "parse_repository"),
    "AptSettings": (".settings", "AptSettings"),
    "load_settings": (".settings", "load_settings"),
    "import_release": (".importer", "import_release"),
    "assemble_repository": (".assemble", "assemble_repository"),
    "GhReleaseAptError": (".errors", "GhReleaseAptError"),
}

__all__ = [*_EXPORTS, "__version__"]


def __getattr__(name: str) -> Any:
    """Lazily import public exports on first access."""

    target = _EXPORTS.get(name)
    if target is None:
        raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
    module = import_module(target[0], __name__)
    value = getattr(module, target[1])
    globals()[name] = value
    return value


def __dir__() -> list[str]:
    """Expose lazily-populated attributes in ``dir()`` results."""

    return sorted(set(globals()) | set(__all__))
