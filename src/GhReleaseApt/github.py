# === NAVMAP v1 ===
# {
#   "module": "GhReleaseApt.github",
#   "purpose": "Look up GitHub releases and stream their assets over HTTPX",
#   "sections": [
#     {"id": "githubrelease", "name": "GitHubRelease", "anchor": "class-githubrelease", "kind": "class"},
#     {"id": "filter-deb-assets", "name": "filter_deb_assets", "anchor": "function-filter-deb-assets", "kind": "function"},
#     {"id": "githubreleaseclient", "name": "GitHubReleaseClient", "anchor": "class-githubreleaseclient", "kind": "class"}
#   ]
# }
# === /NAVMAP ===

"""GitHub release lookup and asset transfer.

This is the remote collaborator of the import pipeline: it resolves a
repository's release, reports its ``.deb`` assets (name, download URL, and
the ``sha256:`` digest GitHub publishes), and streams asset bodies.  No
retries happen here; a failed request surfaces as :class:`TransportError`.

Example:
    >>> client = GitHubReleaseClient(token=None)  # doctest: +SKIP
    >>> release = client.get_release(parse_repository("octo/tools"))  # doctest: +SKIP
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

import httpx

from . import __version__
from .errors import AuthenticationError, ReleaseNotFoundError, TransportError
from .layout import RepositoryId
from .planning import RemoteAsset

__all__ = ["DEFAULT_API_URL", "GitHubRelease", "GitHubReleaseClient", "filter_deb_assets"]

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"
_CHUNK_SIZE = 1 << 20


@dataclass(slots=True, frozen=True)
class GitHubRelease:
    """Subset of the GitHub release payload used by the importer."""

    tag_name: str
    assets: Tuple[RemoteAsset, ...] = field(default_factory=tuple)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "GitHubRelease":
        tag = payload.get("tag_name")
        if not isinstance(tag, str) or not tag:
            raise TransportError("Release payload is missing tag_name")
        assets: List[RemoteAsset] = []
        for raw in payload.get("assets") or []:
            name = raw.get("name")
            url = raw.get("browser_download_url") or raw.get("url")
            if not name or not url:
                continue
            digest = raw.get("digest")
            assets.append(RemoteAsset(name=name, url=url, digest=digest or None))
        return cls(tag_name=tag, assets=tuple(assets))


def filter_deb_assets(assets: Iterable[RemoteAsset]) -> List[RemoteAsset]:
    """Keep only assets whose name ends with ``.deb``."""

    return [asset for asset in assets if asset.name.endswith(".deb")]


class GitHubReleaseClient:
    """Thin HTTPX client for the GitHub releases API.

    Args:
        token: Optional token sent as ``Authorization: Bearer``.
        api_url: Base URL of the REST API.
        timeout: Per-request timeout in seconds.
        client: Pre-built ``httpx.Client`` (for example one using
            ``httpx.MockTransport``); it is not closed by :meth:`close`.
    """

    def __init__(
        self,
        *,
        token: Optional[str] = None,
        api_url: str = DEFAULT_API_URL,
        timeout: float = 60.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.api_url = api_url.rstrip("/")
        self._token = token
        self._owns_client = client is None
        self._client = client or httpx.Client(
            timeout=httpx.Timeout(timeout),
            follow_redirects=True,
        )

    def __enter__(self) -> "GitHubReleaseClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def _headers(self, *, accept: str) -> Dict[str, str]:
        headers = {
            "Accept": accept,
            "User-Agent": f"gh-release-apt/{__version__}",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def get_release(self, repository: RepositoryId, tag: Optional[str] = None) -> GitHubRelease:
        """Fetch the latest release of ``repository`` or the one tagged ``tag``.

        Raises:
            ReleaseNotFoundError: GitHub answered 404.
            AuthenticationError: GitHub answered 401 or 403.
            TransportError: Any other HTTP or network failure.
        """

        base = f"{self.api_url}/repos/{repository.owner}/{repository.repo}/releases"
        url = f"{base}/tags/{tag}" if tag else f"{base}/latest"
        try:
            response = self._client.get(
                url, headers=self._headers(accept="application/vnd.github+json")
            )
        except httpx.HTTPError as exc:
            raise TransportError(f"Failed to fetch release: {exc}") from exc

        if response.status_code == 404:
            target = f"release {tag}" if tag else "releases"
            raise ReleaseNotFoundError(f"No {target} found for {repository}")
        if response.status_code in (401, 403):
            raise AuthenticationError(
                "Authentication failed. Check your GitHub token.",
                status_code=response.status_code,
            )
        if response.is_error:
            raise TransportError(
                f"Failed to fetch release: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise TransportError(f"Failed to fetch release: invalid JSON ({exc})") from exc
        release = GitHubRelease.from_payload(payload)
        logger.debug(
            "release resolved",
            extra={"stage": "import", "repository": str(repository), "tag": release.tag_name},
        )
        return release

    def list_release_assets(
        self, repository: RepositoryId, tag: Optional[str] = None
    ) -> Tuple[str, List[RemoteAsset]]:
        """Return ``(tag_name, deb_assets)`` for the selected release."""

        release = self.get_release(repository, tag)
        return release.tag_name, filter_deb_assets(release.assets)

    def fetch_bytes(self, url: str) -> Iterator[bytes]:
        """Stream the body at ``url`` in chunks.

        Raises:
            TransportError: On a non-success status or network failure.
        """

        try:
            with self._client.stream(
                "GET", url, headers=self._headers(accept="application/octet-stream")
            ) as response:
                if response.is_error:
                    raise TransportError(
                        f"Failed to download: {response.status_code} {response.reason_phrase}",
                        status_code=response.status_code,
                    )
                yield from response.iter_bytes(_CHUNK_SIZE)
        except httpx.HTTPError as exc:
            raise TransportError(f"Failed to download: {exc}") from exc
