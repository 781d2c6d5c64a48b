"""Generate per-release ``Packages`` fragments with ``dpkg-scanpackages``.

The scanner runs from the repository root with the release directory given
as a relative path, so the ``Filename:`` fields it emits are valid relative
to the repository base URL (``pool/<owner>/<repo>/<tag>/<file>.deb``).
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from pathlib import Path
from typing import Protocol

from .errors import ScanError, ToolUnavailableError
from .io import write_text_atomic

__all__ = ["IndexScanner", "DpkgScanner"]

logger = logging.getLogger(__name__)


class IndexScanner(Protocol):
    """Write a control-file fragment describing the ``.deb`` files of one release."""

    def scan(self, output_dir: Path, release_dir: Path, fragment_path: Path) -> Path: ...


class DpkgScanner:
    """Invoke ``dpkg-scanpackages <release dir> /dev/null``."""

    def __init__(self, binary: str = "dpkg-scanpackages") -> None:
        self.binary = binary

    def scan(self, output_dir: Path, release_dir: Path, fragment_path: Path) -> Path:
        """Scan ``release_dir`` and write its fragment to ``fragment_path``.

        Raises:
            ScanError: The directory is missing, holds no ``.deb`` file, the
                tool fails, or it emits nothing.
            ToolUnavailableError: ``dpkg-scanpackages`` is not installed.
        """

        if not release_dir.is_dir():
            raise ScanError(f"Directory not found: {release_dir}")
        if not any(path.suffix == ".deb" for path in release_dir.iterdir()):
            raise ScanError(f"No .deb files found in {release_dir}")

        executable = shutil.which(self.binary)
        if not executable:
            raise ToolUnavailableError(self.binary, "Please install the dpkg-dev package.")

        relative = release_dir.resolve().relative_to(output_dir.resolve()).as_posix()
        try:
            completed = subprocess.run(
                [executable, relative, "/dev/null"],
                cwd=output_dir,
                check=True,
                capture_output=True,
            )
        except subprocess.CalledProcessError as exc:
            stderr = (exc.stderr or b"").decode("utf-8", errors="ignore").strip()
            raise ScanError(f"Failed to generate Packages file: {stderr or exc}") from exc

        stderr = completed.stderr.decode("utf-8", errors="ignore").strip()
        if stderr:
            # dpkg-scanpackages reports its summary ("Wrote N entries") on stderr.
            logger.debug("dpkg-scanpackages output", extra={"stage": "scan", "stderr": stderr})

        try:
            text = completed.stdout.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ScanError(f"dpkg-scanpackages output is not valid UTF-8: {exc}") from exc
        if not text.strip():
            raise ScanError("Generated Packages file is empty")
        write_text_atomic(fragment_path, text)
        logger.info(
            f"Wrote {fragment_path}",
            extra={"stage": "scan", "fragment": str(fragment_path)},
        )
        return fragment_path
