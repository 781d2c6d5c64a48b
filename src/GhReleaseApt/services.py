# === NAVMAP v1 ===
# {
#   "module": "GhReleaseApt.services",
#   "purpose": "Compression and signing capabilities injected into the assemble pipeline",
#   "sections": [
#     {"id": "compressionservice", "name": "CompressionService", "anchor": "class-compressionservice", "kind": "protocol"},
#     {"id": "signingservice", "name": "SigningService", "anchor": "class-signingservice", "kind": "protocol"},
#     {"id": "lzmacompressionservice", "name": "LzmaCompressionService", "anchor": "class-lzmacompressionservice", "kind": "class"},
#     {"id": "xzcompressionservice", "name": "XzCompressionService", "anchor": "class-xzcompressionservice", "kind": "class"},
#     {"id": "compression-service-for", "name": "compression_service_for", "anchor": "function-compression-service-for", "kind": "function"},
#     {"id": "gpgsigningservice", "name": "GpgSigningService", "anchor": "class-gpgsigningservice", "kind": "class"}
#   ]
# }
# === /NAVMAP ===

"""Compression and signing capabilities.

The assemble pipeline only depends on the two small protocols defined here,
so tests can pass in-memory fakes.  The concrete implementations either run
in-process (``lzma``) or shell out to the usual Debian tooling (``xz``,
``gpg``); a missing binary surfaces as :class:`ToolUnavailableError` with an
installation hint.
"""

from __future__ import annotations

import logging
import lzma
import os
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Dict, List, Optional, Protocol

from .errors import GhReleaseAptError, SigningError, ToolUnavailableError, UserConfigError

__all__ = [
    "CompressionService",
    "SigningService",
    "LzmaCompressionService",
    "XzCompressionService",
    "GpgSigningService",
    "compression_service_for",
]

logger = logging.getLogger(__name__)


class CompressionService(Protocol):
    """Write an XZ-compressed copy of ``path`` to ``target`` and return ``target``."""

    def compress(self, path: Path, target: Path) -> Path: ...


class SigningService(Protocol):
    """Sign a manifest as a detached signature or as a clear-signed document."""

    def sign_detached(self, manifest_path: Path, output_path: Path) -> Path: ...

    def clearsign(self, manifest_path: Path, output_path: Path) -> Path: ...


class LzmaCompressionService:
    """Compress in-process with the standard ``lzma`` module."""

    def __init__(self, preset: int = 6) -> None:
        self.preset = preset

    def compress(self, path: Path, target: Path) -> Path:
        temp_path = target.with_name(target.name + ".tmp")
        try:
            with path.open("rb") as source, lzma.open(
                temp_path, "wb", format=lzma.FORMAT_XZ, preset=self.preset
            ) as sink:
                shutil.copyfileobj(source, sink)
            os.replace(temp_path, target)
        except OSError as exc:
            temp_path.unlink(missing_ok=True)
            raise GhReleaseAptError(f"Failed to compress {path}: {exc}") from exc
        return target


class XzCompressionService:
    """Run ``xz -k -f`` on the source file, keeping the original, then move the result."""

    def __init__(self, binary: str = "xz") -> None:
        self.binary = binary

    def compress(self, path: Path, target: Path) -> Path:
        xz_path = shutil.which(self.binary)
        if not xz_path:
            raise ToolUnavailableError(self.binary, "Please install the xz-utils package.")
        try:
            subprocess.run([xz_path, "-k", "-f", str(path)], check=True, capture_output=True)
        except subprocess.CalledProcessError as exc:
            stderr = (exc.stderr or b"").decode("utf-8", errors="ignore").strip()
            raise GhReleaseAptError(f"xz failed for {path}: {stderr or exc}") from exc
        produced = path.with_name(path.name + ".xz")
        if produced != target:
            os.replace(produced, target)
        return target


def compression_service_for(name: str) -> CompressionService:
    """Return the compression backend configured as ``name`` (``lzma`` or ``xz``)."""

    if name == "lzma":
        return LzmaCompressionService()
    if name == "xz":
        return XzCompressionService()
    raise UserConfigError(f"Unknown compression backend '{name}'")


class GpgSigningService:
    """Sign manifests with ``gpg``.

    When ``key_material`` is given, the armored private key is imported into
    a throw-away ``GNUPGHOME`` on first use, so the signer never touches the
    caller's keyring.  Call :meth:`close` (or use the instance as a context
    manager) to remove that directory.
    """

    def __init__(
        self,
        *,
        binary: str = "gpg",
        key_id: Optional[str] = None,
        key_material: Optional[str] = None,
    ) -> None:
        self.binary = binary
        self.key_id = key_id
        self._key_material = key_material
        self._home: Optional[tempfile.TemporaryDirectory[str]] = None

    def __enter__(self) -> "GpgSigningService":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        if self._home is not None:
            self._home.cleanup()
            self._home = None

    def _executable(self) -> str:
        resolved = shutil.which(self.binary)
        if not resolved:
            raise ToolUnavailableError(self.binary, "Please install the gnupg package.")
        return resolved

    def _environment(self, executable: str) -> Dict[str, str]:
        env = dict(os.environ)
        if not self._key_material:
            return env
        if self._home is None:
            home = tempfile.TemporaryDirectory(prefix="ghapt-gnupg-")
            os.chmod(home.name, 0o700)
            env["GNUPGHOME"] = home.name
            try:
                subprocess.run(
                    [executable, "--batch", "--import"],
                    input=self._key_material.encode("utf-8"),
                    check=True,
                    capture_output=True,
                    env=env,
                )
            except subprocess.CalledProcessError as exc:
                home.cleanup()
                stderr = (exc.stderr or b"").decode("utf-8", errors="ignore").strip()
                raise SigningError(f"Failed to import signing key: {stderr or exc}") from exc
            self._home = home
            logger.debug("signing key imported", extra={"stage": "sign"})
        env["GNUPGHOME"] = self._home.name
        return env

    def _run(self, mode_args: List[str], manifest_path: Path, output_path: Path) -> Path:
        executable = self._executable()
        env = self._environment(executable)
        command = [executable, "--batch", "--yes", "--digest-algo", "SHA256"]
        if self.key_id:
            command += ["--local-user", self.key_id]
        command += [*mode_args, "--output", str(output_path), str(manifest_path)]
        output_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            subprocess.run(command, check=True, capture_output=True, env=env)
        except subprocess.CalledProcessError as exc:
            output_path.unlink(missing_ok=True)
            stderr = (exc.stderr or b"").decode("utf-8", errors="ignore").strip()
            raise SigningError(f"gpg {mode_args[-1]} failed: {stderr or exc}") from exc
        return output_path

    def sign_detached(self, manifest_path: Path, output_path: Path) -> Path:
        return self._run(["--armor", "--detach-sign"], manifest_path, output_path)

    def clearsign(self, manifest_path: Path, output_path: Path) -> Path:
        return self._run(["--clearsign"], manifest_path, output_path)
