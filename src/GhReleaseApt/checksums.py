# === NAVMAP v1 ===
# {
#   "module": "GhReleaseApt.checksums",
#   "purpose": "Parse tagged digests, hash files, and derive filename-to-digest indexes from fragments",
#   "sections": [
#     {"id": "digest", "name": "Digest", "anchor": "class-digest", "kind": "class"},
#     {"id": "parse-digest", "name": "parse_digest", "anchor": "function-parse-digest", "kind": "function"},
#     {"id": "hashing", "name": "sha256_text", "anchor": "HASH", "kind": "helpers"},
#     {"id": "build-checksum-index", "name": "build_checksum_index", "anchor": "function-build-checksum-index", "kind": "function"},
#     {"id": "load-checksum-index", "name": "load_checksum_index", "anchor": "function-load-checksum-index", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Checksum parsing, hashing, and index helpers.

GitHub reports asset digests as ``"<algorithm>:<hex>"`` strings while the
per-release ``Packages`` fragment records ``SHA256`` values per artifact.
This module normalises both sides so the sync planner can compare them, and
exposes streaming hash helpers used by the manifest builder.
"""

from __future__ import annotations

import hashlib
import logging
import posixpath
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

from .control import parse_fragment

__all__ = [
    "Digest",
    "parse_digest",
    "sha256_text",
    "build_checksum_index",
    "load_checksum_index",
]

logger = logging.getLogger(__name__)

_HEX_PATTERN = re.compile(r"[0-9a-fA-F]+")


@dataclass(slots=True, frozen=True)
class Digest:
    """Digest tagged with its algorithm, parsed once at the boundary."""

    algorithm: str
    value: str

    @property
    def usable(self) -> bool:
        """Return ``True`` when the digest can be compared against ``SHA256`` records."""

        return self.algorithm == "sha256" and _HEX_PATTERN.fullmatch(self.value) is not None

    def matches(self, recorded: Optional[str]) -> bool:
        """Compare against a recorded hex digest, ignoring case."""

        if recorded is None or not self.usable:
            return False
        return self.value.lower() == recorded.strip().lower()

    def __str__(self) -> str:
        return f"{self.algorithm}:{self.value}"


def parse_digest(value: Optional[str]) -> Optional[Digest]:
    """Split a ``"<algorithm>:<hex>"`` string into a :class:`Digest`.

    Returns ``None`` when no digest was reported.  A value without an
    algorithm tag is kept with an empty algorithm so callers can tell it
    apart from an absent digest.

    Examples:
        >>> parse_digest("SHA256:ABCD")
        Digest(algorithm='sha256', value='ABCD')
        >>> parse_digest(None) is None
        True
    """

    if value is None:
        return None
    candidate = value.strip()
    if not candidate:
        return None
    algorithm, sep, payload = candidate.partition(":")
    if not sep:
        return Digest(algorithm="", value=candidate)
    return Digest(algorithm=algorithm.strip().lower(), value=payload.strip())


def sha256_text(text: str) -> str:
    """Compute the SHA-256 digest of ``text`` encoded as UTF-8."""

    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def build_checksum_index(fragment_text: str) -> Dict[str, str]:
    """Map artifact base filenames to their recorded ``SHA256`` values.

    Entries missing either ``Filename`` or ``SHA256`` are ignored.  When two
    entries share a base filename the later one wins.
    """

    index: Dict[str, str] = {}
    for entry in parse_fragment(fragment_text):
        filename = entry.get("Filename")
        digest = entry.get("SHA256")
        if filename is None or digest is None:
            continue
        basename = posixpath.basename(filename.strip().replace("\\", "/"))
        if not basename:
            continue
        index[basename] = digest.strip()
    return index


def load_checksum_index(path: Path) -> Dict[str, str]:
    """Read ``path`` and build its checksum index.

    A missing or unreadable fragment yields an empty index; on a first run
    there is simply no prior record.
    """

    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.debug(
            "no prior checksum record",
            extra={"stage": "plan", "fragment": str(path)},
        )
        return {}
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning(
            "unable to read prior checksum record",
            extra={"stage": "plan", "fragment": str(path), "error": str(exc)},
        )
        return {}
    index = build_checksum_index(text)
    logger.debug(
        "loaded checksum record",
        extra={"stage": "plan", "fragment": str(path), "entries": len(index)},
    )
    return index
