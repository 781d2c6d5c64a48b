# === NAVMAP v1 ===
# {
#   "module": "tests.test_github",
#   "purpose": "GitHub release lookup and asset streaming tests using httpx.MockTransport",
#   "sections": [
#     {"id": "lookup", "name": "Release lookup", "anchor": "LKP", "kind": "section"},
#     {"id": "streaming", "name": "Asset streaming", "anchor": "STR", "kind": "section"}
#   ]
# }
# === /NAVMAP ===

"""Tests for :mod:`GhReleaseApt.github`."""

from __future__ import annotations

from typing import Callable, List

import httpx
import pytest

from GhReleaseApt.errors import AuthenticationError, ReleaseNotFoundError, TransportError
from GhReleaseApt.github import GitHubRelease, GitHubReleaseClient, filter_deb_assets
from GhReleaseApt.layout import RepositoryId
from GhReleaseApt.planning import RemoteAsset

REPO = RepositoryId("octo", "tools")

RELEASE_PAYLOAD = {
    "tag_name": "v1.2.0",
    "assets": [
        {
            "name": "tool_1.2.0_amd64.deb",
            "browser_download_url": "https://github.com/octo/tools/releases/download/v1.2.0/tool_1.2.0_amd64.deb",
            "digest": "sha256:" + "ab" * 32,
        },
        {
            "name": "tool_1.2.0_arm64.deb",
            "browser_download_url": "https://github.com/octo/tools/releases/download/v1.2.0/tool_1.2.0_arm64.deb",
            "digest": None,
        },
        {
            "name": "checksums.txt",
            "browser_download_url": "https://github.com/octo/tools/releases/download/v1.2.0/checksums.txt",
        },
    ],
}


def _client(handler: Callable[[httpx.Request], httpx.Response], **kwargs) -> GitHubReleaseClient:
    return GitHubReleaseClient(client=httpx.Client(transport=httpx.MockTransport(handler)), **kwargs)


class TestReleaseLookup:
    def test_latest_release_lists_only_deb_assets(self) -> None:
        seen: List[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=RELEASE_PAYLOAD)

        tag, assets = _client(handler, token="ghp_example").list_release_assets(REPO)

        assert tag == "v1.2.0"
        assert [asset.name for asset in assets] == [
            "tool_1.2.0_amd64.deb",
            "tool_1.2.0_arm64.deb",
        ]
        assert assets[0].parsed_digest is not None and assets[0].parsed_digest.usable
        assert assets[1].digest is None
        assert seen[0].url.path == "/repos/octo/tools/releases/latest"
        assert seen[0].headers["Authorization"] == "Bearer ghp_example"
        assert seen[0].headers["User-Agent"].startswith("gh-release-apt/")

    def test_specific_tag_uses_tags_endpoint(self) -> None:
        paths: List[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            paths.append(request.url.path)
            return httpx.Response(200, json=RELEASE_PAYLOAD)

        _client(handler).get_release(REPO, tag="v1.2.0")

        assert paths == ["/repos/octo/tools/releases/tags/v1.2.0"]

    def test_anonymous_requests_send_no_authorization(self) -> None:
        headers: List[httpx.Headers] = []

        def handler(request: httpx.Request) -> httpx.Response:
            headers.append(request.headers)
            return httpx.Response(200, json=RELEASE_PAYLOAD)

        _client(handler).get_release(REPO)

        assert "Authorization" not in headers[0]

    def test_not_found(self) -> None:
        client = _client(lambda request: httpx.Response(404, json={"message": "Not Found"}))

        with pytest.raises(ReleaseNotFoundError, match="No releases found for octo/tools"):
            client.get_release(REPO)

    @pytest.mark.parametrize("status", [401, 403])
    def test_authentication_failure(self, status: int) -> None:
        client = _client(lambda request: httpx.Response(status))

        with pytest.raises(AuthenticationError) as excinfo:
            client.get_release(REPO)

        assert str(excinfo.value) == "Authentication failed. Check your GitHub token."
        assert excinfo.value.status_code == status

    def test_server_error(self) -> None:
        client = _client(lambda request: httpx.Response(502))

        with pytest.raises(TransportError, match="502"):
            client.get_release(REPO)

    def test_network_error_is_wrapped(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(TransportError, match="Failed to fetch release"):
            _client(handler).get_release(REPO)


def test_from_payload_requires_tag_name() -> None:
    with pytest.raises(TransportError):
        GitHubRelease.from_payload({"assets": []})


def test_filter_deb_assets_is_suffix_based() -> None:
    assets = [
        RemoteAsset("a.deb", "u1"),
        RemoteAsset("a.deb.sig", "u2"),
        RemoteAsset("b.rpm", "u3"),
    ]

    assert filter_deb_assets(assets) == [assets[0]]


class TestFetchBytes:
    def test_streams_body(self) -> None:
        body = b"\x00" * 4096 + b"tail"
        client = _client(lambda request: httpx.Response(200, content=body))

        assert b"".join(client.fetch_bytes("https://example.invalid/a.deb")) == body

    def test_error_status_raises_transport_error(self) -> None:
        client = _client(lambda request: httpx.Response(404))

        with pytest.raises(TransportError) as excinfo:
            list(client.fetch_bytes("https://example.invalid/a.deb"))

        assert excinfo.value.status_code == 404

    def test_requests_octet_stream(self) -> None:
        accepts: List[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            accepts.append(request.headers["Accept"])
            return httpx.Response(200, content=b"x")

        list(_client(handler).fetch_bytes("https://example.invalid/a.deb"))

        assert accepts == ["application/octet-stream"]
