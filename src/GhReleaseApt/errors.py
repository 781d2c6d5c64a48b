# === NAVMAP v1 ===
# {
#   "module": "GhReleaseApt.errors",
#   "purpose": "Define the exception hierarchy used across importing, assembling, and signing",
#   "sections": [
#     {"id": "base", "name": "Base Exceptions", "anchor": "BAS", "kind": "api"},
#     {"id": "configuration", "name": "Configuration Errors", "anchor": "CFG", "kind": "api"},
#     {"id": "not-found", "name": "Not-Found Conditions", "anchor": "NFD", "kind": "api"},
#     {"id": "transport", "name": "Transport Errors", "anchor": "TRN", "kind": "api"},
#     {"id": "tooling", "name": "Tooling & Assembly Failures", "anchor": "TLS", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""Exception hierarchy shared across release import, index assembly, and signing.

The repository pipeline spans GitHub release lookups, artifact transfer,
control-file scanning, and manifest generation.  This module groups the
failure modes into a small hierarchy so the CLI can react to high-level
categories (for example, not-found conditions vs. transport failures) while
callers still have access to the specialised subclasses.
"""

from __future__ import annotations

from typing import Optional

__all__ = [
    "GhReleaseAptError",
    "UserConfigError",
    "RepositoryFormatError",
    "NotFoundError",
    "ReleaseNotFoundError",
    "NoAssetsError",
    "NoFragmentsError",
    "NoGroupableEntriesError",
    "TransportError",
    "AuthenticationError",
    "AssetFetchError",
    "ToolUnavailableError",
    "ScanError",
    "SigningError",
    "AssemblyError",
]


class GhReleaseAptError(RuntimeError):
    """Base exception for repository import, assembly, or signing failures."""


class UserConfigError(GhReleaseAptError):
    """Raised when CLI arguments or YAML configuration inputs are invalid."""


class RepositoryFormatError(UserConfigError):
    """Raised when a repository identifier is not in ``owner/repo`` form."""


class NotFoundError(GhReleaseAptError):
    """Raised when an expected input (release, asset, fragment) does not exist."""


class ReleaseNotFoundError(NotFoundError):
    """Raised when GitHub reports no matching release for a repository."""


class NoAssetsError(NotFoundError):
    """Raised when a release carries no ``.deb`` assets to import."""


class NoFragmentsError(NotFoundError):
    """Raised when ``assemble`` finds no per-release ``Packages`` fragments."""


class NoGroupableEntriesError(NotFoundError):
    """Raised when no control-file entry carries an ``Architecture`` field."""

    def __init__(self, message: str, *, dropped: int = 0) -> None:
        super().__init__(message)
        self.dropped = dropped


class TransportError(GhReleaseAptError):
    """Raised when an HTTP exchange with the release origin fails."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthenticationError(TransportError):
    """Raised when GitHub rejects the supplied credentials."""


class AssetFetchError(TransportError):
    """Raised when a single release asset cannot be downloaded."""

    def __init__(
        self,
        asset_name: str,
        cause: BaseException,
        *,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(f"Failed to download {asset_name}: {cause}", status_code=status_code)
        self.asset_name = asset_name
        self.cause = cause


class ToolUnavailableError(GhReleaseAptError):
    """Raised when an external binary (xz, gpg, dpkg-scanpackages) is missing."""

    def __init__(self, tool: str, hint: str) -> None:
        super().__init__(f"{tool} not found. {hint}")
        self.tool = tool
        self.hint = hint


class ScanError(GhReleaseAptError):
    """Raised when the native index scanner fails or produces no output."""


class SigningError(GhReleaseAptError):
    """Raised when the signing collaborator cannot produce a signature."""


class AssemblyError(GhReleaseAptError):
    """Raised when generated index or manifest files are empty or unusable."""
