# === NAVMAP v1 ===
# {
#   "module": "GhReleaseApt.grouping",
#   "purpose": "Group control-file stanzas from many fragments by their Architecture field",
#   "sections": [
#     {"id": "architecturegroups", "name": "ArchitectureGroups", "anchor": "class-architecturegroups", "kind": "class"},
#     {"id": "group-by-architecture", "name": "group_by_architecture", "anchor": "function-group-by-architecture", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Architecture grouping for per-release ``Packages`` fragments."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Iterator, List, Mapping, Sequence, Tuple

from .control import parse_fragment
from .errors import NoGroupableEntriesError

__all__ = ["ArchitectureGroups", "group_by_architecture"]

logger = logging.getLogger(__name__)

# One path segment: becomes the `binary-<arch>` directory name.
_ARCHITECTURE_TOKEN = re.compile(r"[A-Za-z0-9][A-Za-z0-9.+-]*")


@dataclass(frozen=True)
class ArchitectureGroups(Mapping[str, Tuple[str, ...]]):
    """Immutable ``architecture -> stanza texts`` mapping.

    Keys iterate in lexicographic order; stanzas keep fragment scan order.
    ``dropped`` counts entries that had no usable ``Architecture`` field.
    """

    groups: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)
    dropped: int = 0

    def __post_init__(self) -> None:
        ordered = {key: tuple(self.groups[key]) for key in sorted(self.groups)}
        object.__setattr__(self, "groups", MappingProxyType(ordered))

    def __getitem__(self, architecture: str) -> Tuple[str, ...]:
        return self.groups[architecture]

    def __iter__(self) -> Iterator[str]:
        return iter(self.groups)

    def __len__(self) -> int:
        return len(self.groups)

    @property
    def architectures(self) -> List[str]:
        return list(self.groups)

    @property
    def entry_count(self) -> int:
        return sum(len(entries) for entries in self.groups.values())


def group_by_architecture(fragments: Sequence[str]) -> ArchitectureGroups:
    """Group every stanza of ``fragments`` by its ``Architecture`` value.

    Args:
        fragments: Fragment texts in scan order.

    Returns:
        :class:`ArchitectureGroups` with trimmed stanza texts.

    Entries whose architecture is not a single token such as ``amd64`` or
    ``armhf`` (letters, digits, ``.``, ``+``, ``-``) are dropped: the value
    names a directory under ``dists/``.

    Raises:
        NoGroupableEntriesError: If no stanza carries a usable
            ``Architecture`` field, including when ``fragments`` is empty.
    """

    collected: Dict[str, List[str]] = {}
    dropped = 0
    rejected = 0
    for fragment in fragments:
        for entry in parse_fragment(fragment):
            architecture = entry.get("Architecture")
            if architecture is None or not architecture.strip():
                dropped += 1
                logger.debug(
                    "entry without Architecture dropped",
                    extra={"stage": "assemble", "package": entry.get("Package")},
                )
                continue
            architecture = architecture.strip()
            if _ARCHITECTURE_TOKEN.fullmatch(architecture) is None:
                rejected += 1
                logger.warning(
                    f"Dropped entry {entry.get('Package')} with invalid "
                    f"Architecture {architecture!r}",
                    extra={"stage": "assemble", "package": entry.get("Package")},
                )
                continue
            text = entry.text if entry.text is not None else entry.render()
            collected.setdefault(architecture, []).append(text.strip())

    if not collected:
        raise NoGroupableEntriesError(
            "No package entries with Architecture field found", dropped=dropped + rejected
        )
    if dropped:
        logger.warning(
            f"Dropped {dropped} entr{'y' if dropped == 1 else 'ies'} without Architecture field",
            extra={"stage": "assemble", "dropped": dropped},
        )
    return ArchitectureGroups(
        groups={key: tuple(values) for key, values in collected.items()},
        dropped=dropped + rejected,
    )
