# === NAVMAP v1 ===
# {
#   "module": "GhReleaseApt.control",
#   "purpose": "Parse and serialize Debian control-file stanzas used by Packages indexes",
#   "sections": [
#     {"id": "entry", "name": "Entry", "anchor": "class-entry", "kind": "class"},
#     {"id": "split-blocks", "name": "split_blocks", "anchor": "function-split-blocks", "kind": "function"},
#     {"id": "parse-entry", "name": "parse_entry", "anchor": "function-parse-entry", "kind": "function"},
#     {"id": "parse-fragment", "name": "parse_fragment", "anchor": "function-parse-fragment", "kind": "function"},
#     {"id": "serialize-fragment", "name": "serialize_fragment", "anchor": "function-serialize-fragment", "kind": "function"},
#     {"id": "extract-field", "name": "extract_field", "anchor": "function-extract-field", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Control-file codec for ``Packages`` fragments.

A fragment is a sequence of stanzas separated by a single blank line.  Each
stanza holds ``Field: value`` lines; a line starting with a space or tab
continues the previous field (``dpkg-scanpackages`` emits folded
``Description`` values this way).  When a field repeats inside one stanza the
last occurrence wins.

Parsing is lenient: stray lines and stanzas without any field are skipped
with a warning so that a partially corrupt prior index never blocks a run.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Union

__all__ = [
    "Entry",
    "split_blocks",
    "parse_entry",
    "parse_fragment",
    "serialize_fragment",
    "extract_field",
]

logger = logging.getLogger(__name__)

_BLOCK_SEPARATOR = re.compile(r"\n[ \t\r]*\n\s*")
_FIELD_LINE = re.compile(r"^(?P<name>[A-Za-z0-9][A-Za-z0-9_-]*):(?P<value>.*)$")


@dataclass(slots=True)
class Entry:
    """One control-file stanza as ordered ``field -> value`` pairs.

    Attributes:
        fields: Field values keyed by field name, in first-seen order.
        text: Trimmed source stanza when the entry was parsed from text.
    """

    fields: Dict[str, str] = field(default_factory=dict)
    text: Optional[str] = None

    @classmethod
    def from_mapping(cls, values: Mapping[str, str]) -> "Entry":
        return cls(fields=dict(values))

    def get(self, name: str) -> Optional[str]:
        """Return the value for ``name`` or ``None`` when the field is absent."""

        return self.fields.get(name)

    def __getitem__(self, name: str) -> str:
        return self.fields[name]

    def __contains__(self, name: object) -> bool:
        return name in self.fields

    def __iter__(self) -> Iterator[str]:
        return iter(self.fields)

    def render(self) -> str:
        """Render the stanza as ``Field: value`` lines without trailing newline."""

        lines: List[str] = []
        for name, value in self.fields.items():
            first, *rest = value.split("\n")
            lines.append(f"{name}: {first}" if first else f"{name}:")
            lines.extend(rest)
        return "\n".join(lines)


def split_blocks(text: str) -> List[str]:
    """Split ``text`` into trimmed stanza blocks.

    A whitespace-only line counts as blank.  Blocks that are empty after
    trimming are discarded.
    """

    normalized = text.replace("\r\n", "\n")
    blocks = _BLOCK_SEPARATOR.split(normalized)
    return [block.strip() for block in blocks if block.strip()]


def parse_entry(block: str) -> Optional[Entry]:
    """Parse one stanza; return ``None`` when no field line is present."""

    fields: Dict[str, str] = {}
    current: Optional[str] = None
    for line_number, line in enumerate(block.split("\n"), start=1):
        if line[:1] in (" ", "\t"):
            if current is None:
                logger.warning(
                    "continuation line without field",
                    extra={"stage": "parse", "line": line_number},
                )
                continue
            fields[current] = f"{fields[current]}\n{line.rstrip()}"
            continue
        match = _FIELD_LINE.match(line)
        if match is None:
            if line.strip():
                logger.warning(
                    "skipping unparsable control line",
                    extra={"stage": "parse", "line": line_number, "content": line[:80]},
                )
            current = None
            continue
        name = match.group("name")
        # Re-assigning an existing key keeps its position; the value is replaced.
        fields[name] = match.group("value").strip()
        current = name
    if not fields:
        return None
    return Entry(fields=fields, text=block.strip())


def parse_fragment(text: str) -> List[Entry]:
    """Parse a control-file fragment into :class:`Entry` objects.

    Args:
        text: Fragment text, typically the contents of a ``Packages`` file.

    Returns:
        Entries in file order.  Stanzas with no recognisable field are
        skipped and logged.

    Examples:
        >>> [e.get("Package") for e in parse_fragment("Package: a\\n\\nPackage: b\\n")]
        ['a', 'b']
    """

    entries: List[Entry] = []
    for index, block in enumerate(split_blocks(text)):
        entry = parse_entry(block)
        if entry is None:
            logger.warning(
                "skipping unparsable control stanza",
                extra={"stage": "parse", "stanza": index},
            )
            continue
        entries.append(entry)
    return entries


def serialize_fragment(entries: Iterable[Union[Entry, str]]) -> str:
    """Join stanzas with exactly one blank line and one trailing newline.

    ``Entry`` values are rendered from their fields; strings are used as
    stanza text after trimming.  An empty input yields an empty string.
    """

    blocks: List[str] = []
    for entry in entries:
        block = entry.render() if isinstance(entry, Entry) else entry.strip()
        if block:
            blocks.append(block)
    if not blocks:
        return ""
    return "\n\n".join(blocks) + "\n"


def extract_field(entry_text: str, field_name: str) -> Optional[str]:
    """Return the trimmed value of ``field_name`` from a single stanza.

    Only lines whose prefix is exactly ``field_name + ":"`` match.  If the
    field repeats, the last occurrence wins.
    """

    prefix = f"{field_name}:"
    value: Optional[str] = None
    for line in entry_text.split("\n"):
        if line.startswith(prefix):
            value = line[len(prefix) :].strip()
    return value
