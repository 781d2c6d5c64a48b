# === NAVMAP v1 ===
# {
#   "module": "tests.conftest",
#   "purpose": "Shared pytest fixtures for the gh-release-apt suite",
#   "sections": [
#     {"id": "stanzas", "name": "Sample stanzas", "anchor": "STZ", "kind": "constants"},
#     {"id": "fakes", "name": "Fake collaborators", "anchor": "FAK", "kind": "helpers"},
#     {"id": "fixtures", "name": "Fixtures", "anchor": "FIX", "kind": "fixtures"}
#   ]
# }
# === /NAVMAP ===

"""
Pytest Configuration

Shared stanzas and in-memory collaborators (byte transport, release source,
index scanner, compressor, signer) used across the suite so pipeline tests
never touch the network or external binaries.
"""

from __future__ import annotations

import hashlib
import logging
import os
import threading
import time
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence, Set, Tuple

import pytest

from GhReleaseApt.control import serialize_fragment
from GhReleaseApt.errors import SigningError, TransportError
from GhReleaseApt.layout import RepositoryId
from GhReleaseApt.logging_utils import LOGGER_NAME
from GhReleaseApt.planning import RemoteAsset
from GhReleaseApt.settings import AptSettings, load_settings

AMD64_STANZA = """Package: hello
Version: 1.0.0
Architecture: amd64
Maintainer: Octo Cat <octo@example.org>
Filename: pool/octo/hello/v1.0.0/hello_1.0.0_amd64.deb
Size: 1024
SHA256: 5f70bf18a086007016e948b04aed3b82103a36bea41755b6cddfaf10ace3c6ef
Description: friendly greeter
 Prints a greeting and exits."""

ARM64_STANZA = """Package: hello
Version: 1.0.0
Architecture: arm64
Maintainer: Octo Cat <octo@example.org>
Filename: pool/octo/hello/v1.0.0/hello_1.0.0_arm64.deb
Size: 1080
SHA256: 8b1a9953c4611296a827abf8c47804d7e6c49c6b3e1b7b1f7b0f5c5e5d5b1a99
Description: friendly greeter
 Prints a greeting and exits."""


class FakeTransport:
    """In-memory ``ByteSource`` keyed by URL."""

    def __init__(
        self,
        bodies: Dict[str, bytes],
        *,
        failures: Optional[Set[str]] = None,
        delays: Optional[Dict[str, float]] = None,
    ) -> None:
        self.bodies = bodies
        self.failures = failures or set()
        self.delays = delays or {}
        self.requested: List[str] = []
        self._lock = threading.Lock()

    def fetch_bytes(self, url: str) -> Iterator[bytes]:
        with self._lock:
            self.requested.append(url)
        time.sleep(self.delays.get(url, 0.0))
        if url in self.failures:
            raise TransportError("Failed to download: 500 Internal Server Error", status_code=500)
        body = self.bodies[url]
        yield body[: len(body) // 2]
        yield body[len(body) // 2 :]


class FakeReleaseSource(FakeTransport):
    """Release source serving one tag with a fixed list of assets."""

    def __init__(self, tag: str, assets: Sequence[RemoteAsset], bodies: Dict[str, bytes]) -> None:
        super().__init__(bodies)
        self.tag = tag
        self.assets = list(assets)
        self.lookups: List[Tuple[RepositoryId, Optional[str]]] = []

    def list_release_assets(
        self, repository: RepositoryId, tag: Optional[str] = None
    ) -> Tuple[str, List[RemoteAsset]]:
        self.lookups.append((repository, tag))
        return self.tag, list(self.assets)


class FakeScanner:
    """Index scanner that emits one stanza per ``.deb`` with its real digest."""

    def __init__(self, architecture: str = "amd64") -> None:
        self.architecture = architecture
        self.calls: List[Path] = []

    def scan(self, output_dir: Path, release_dir: Path, fragment_path: Path) -> Path:
        self.calls.append(release_dir)
        stanzas = []
        for deb in sorted(release_dir.glob("*.deb")):
            payload = deb.read_bytes()
            stanzas.append(
                "\n".join(
                    [
                        f"Package: {deb.stem.split('_')[0]}",
                        "Version: 1.0.0",
                        f"Architecture: {self.architecture}",
                        f"Filename: {deb.relative_to(output_dir).as_posix()}",
                        f"Size: {len(payload)}",
                        f"SHA256: {hashlib.sha256(payload).hexdigest()}",
                    ]
                )
            )
        fragment_path.write_text(serialize_fragment(stanzas), encoding="utf-8")
        return fragment_path


class FakeCompressor:
    """Compression capability that copies the source to the requested target."""

    def __init__(self) -> None:
        self.calls: List[Path] = []

    def compress(self, path: Path, target: Path) -> Path:
        self.calls.append(path)
        target.write_bytes(path.read_bytes())
        return target


class FakeSigner:
    """Signing capability writing recognisable placeholder signatures."""

    def __init__(self, *, fail_on: Optional[str] = None) -> None:
        self.fail_on = fail_on
        self.calls: List[Tuple[str, Path]] = []

    def sign_detached(self, manifest_path: Path, output_path: Path) -> Path:
        self.calls.append(("detached", manifest_path))
        if self.fail_on == "detached":
            raise SigningError("gpg --detach-sign failed: no secret key")
        output_path.write_text("-----BEGIN PGP SIGNATURE-----\nfake\n", encoding="utf-8")
        return output_path

    def clearsign(self, manifest_path: Path, output_path: Path) -> Path:
        self.calls.append(("clearsign", manifest_path))
        if self.fail_on == "clearsign":
            raise SigningError("gpg --clearsign failed: no secret key")
        body = manifest_path.read_text(encoding="utf-8")
        output_path.write_text(
            f"-----BEGIN PGP SIGNED MESSAGE-----\n\n{body}-----BEGIN PGP SIGNATURE-----\n",
            encoding="utf-8",
        )
        return output_path


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep host credentials and overrides out of settings resolution."""

    for name in ("GITHUB_TOKEN", "GHAPT_GITHUB_TOKEN", "GHAPT_SIGNING_KEY", "GHAPT_CONFIG"):
        monkeypatch.delenv(name, raising=False)
    for name in list(os.environ):
        if name.upper().startswith("GHAPT_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def reset_package_logger() -> Iterator[None]:
    """Restore propagation so ``caplog`` sees package records."""

    logger = logging.getLogger(LOGGER_NAME)
    original_level = logger.level
    yield
    for handler in list(logger.handlers):
        if getattr(handler, "_ghapt_managed", False):
            logger.removeHandler(handler)
    logger.propagate = True
    logger.setLevel(original_level)


@pytest.fixture
def settings(tmp_path: Path) -> AptSettings:
    return load_settings(output_dir=tmp_path / "apt-repo")


@pytest.fixture
def write_fragment():
    """Write stanzas as a pool fragment for ``owner/repo@tag``."""

    def _write(root: Path, owner: str, repo: str, tag: str, stanzas: Sequence[str]) -> Path:
        path = root / "pool" / owner / repo / tag / "Packages"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(serialize_fragment(stanzas), encoding="utf-8")
        return path

    return _write
