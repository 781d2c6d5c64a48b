# === NAVMAP v1 ===
# {
#   "module": "GhReleaseApt.assemble",
#   "purpose": "Assemble per-architecture Packages indexes and the Release manifest from pool fragments",
#   "sections": [
#     {"id": "assembleresult", "name": "AssembleResult", "anchor": "class-assembleresult", "kind": "class"},
#     {"id": "find-fragments", "name": "find_fragments", "anchor": "function-find-fragments", "kind": "function"},
#     {"id": "read-fragments", "name": "_read_fragments", "anchor": "function-read-fragments", "kind": "function"},
#     {"id": "write-indexes", "name": "_write_indexes", "anchor": "function-write-indexes", "kind": "function"},
#     {"id": "assemble-repository", "name": "assemble_repository", "anchor": "function-assemble-repository", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Repository assembly pipeline (the ``assemble`` subcommand).

Every ``Packages`` fragment under ``pool/`` is parsed, its stanzas are grouped
by ``Architecture``, and one ``dists/<suite>/<component>/binary-<arch>/Packages``
file is written per architecture together with its ``.xz`` sibling.  The
suite ``Release`` manifest is then rebuilt from the files on disk and, when
requested, signed.  Everything under ``dists/`` is regenerated on each run;
stale architecture directories and signatures are removed first.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Tuple

from .control import serialize_fragment
from .errors import AssemblyError, NoFragmentsError, UserConfigError
from .grouping import ArchitectureGroups, group_by_architecture
from .io import remove_stale_arch_dirs, write_text_atomic
from .layout import INDEX_FILENAME, RepositoryLayout
from .logging_utils import LOGGER_NAME, generate_correlation_id
from .release import build_manifest, render_manifest, sign_manifest
from .services import CompressionService, SigningService
from .settings import AptSettings

__all__ = ["AssembleResult", "find_fragments", "assemble_repository"]


@dataclass(slots=True, frozen=True)
class AssembleResult:
    """Summary of one assemble run."""

    fragments: Tuple[Path, ...]
    architectures: Tuple[str, ...]
    index_files: Tuple[Path, ...]
    compressed_files: Tuple[Path, ...]
    release_path: Path
    signatures: Tuple[Path, ...]
    dropped_entries: int


def find_fragments(pool_dir: Path) -> List[Path]:
    """Return every ``Packages`` file below ``pool_dir`` sorted by relative path."""

    if not pool_dir.is_dir():
        return []
    found = [path for path in pool_dir.rglob(INDEX_FILENAME) if path.is_file()]
    return sorted(found, key=lambda path: path.relative_to(pool_dir).as_posix())


def _read_fragments(paths: List[Path]) -> List[str]:
    texts: List[str] = []
    for path in paths:
        try:
            texts.append(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError) as exc:
            raise AssemblyError(f"Unable to read fragment {path}: {exc}") from exc
    return texts


def _write_indexes(
    layout: RepositoryLayout,
    groups: ArchitectureGroups,
    compressor: CompressionService,
    log: logging.LoggerAdapter,
) -> Tuple[List[Path], List[Path]]:
    index_files: List[Path] = []
    compressed_files: List[Path] = []
    for architecture, entries in groups.items():
        index_path = layout.index_path(architecture)
        write_text_atomic(index_path, serialize_fragment(entries))
        if index_path.stat().st_size == 0:
            raise AssemblyError(f"Generated index is empty: {index_path}")
        log.info(f"  Created {index_path} ({len(entries)} package(s))")
        index_files.append(index_path)
        compressed_files.append(
            compressor.compress(index_path, layout.compressed_index_path(architecture))
        )
    return index_files, compressed_files


def assemble_repository(
    *,
    settings: AptSettings,
    compressor: CompressionService,
    signer: Optional[SigningService] = None,
    sign: bool = False,
    date: Optional[datetime] = None,
    logger: Optional[logging.Logger] = None,
) -> AssembleResult:
    """Regenerate ``dists/`` from the fragments under ``pool/``.

    Args:
        settings: Resolved settings (output root, suite, component).
        compressor: Writes ``Packages.xz`` next to each index.
        signer: Signing capability, required when ``sign`` is true.
        sign: Produce ``Release.gpg`` and ``InRelease``.
        date: Manifest timestamp override.
        logger: Optional logger override.

    Raises:
        NoFragmentsError: No fragment exists under ``pool/``.
        NoGroupableEntriesError: No stanza carries an ``Architecture`` field.
        AssemblyError: A generated file is empty or a fragment is unreadable.
        UserConfigError: Signing was requested without a signer.
    """

    if sign and signer is None:
        raise UserConfigError("Signing requested but no signing service configured")

    log = logger or logging.getLogger(LOGGER_NAME)
    adapter = logging.LoggerAdapter(log, extra={"correlation_id": generate_correlation_id()})
    layout = settings.layout()

    adapter.info(f"Scanning for Packages files in {layout.pool_dir}...")
    fragments = find_fragments(layout.pool_dir)
    if not fragments:
        raise NoFragmentsError(f"No Packages files found in {layout.pool_dir}")
    adapter.info(f"Found {len(fragments)} Packages file(s)")

    groups = group_by_architecture(_read_fragments(fragments))
    architectures = groups.architectures
    adapter.info(f"Found {len(architectures)} architecture(s): {', '.join(architectures)}")

    for stale in remove_stale_arch_dirs(layout.component_dir, architectures):
        adapter.info(f"Removed stale index directory {stale}")
    for stale_signature in (layout.release_signature_path, layout.inrelease_path):
        stale_signature.unlink(missing_ok=True)

    index_files, compressed_files = _write_indexes(layout, groups, compressor, adapter)

    manifest = build_manifest(
        layout.suite_dir,
        architectures,
        suite=layout.suite,
        components=(layout.component,),
        date=date,
        max_workers=settings.max_concurrent_downloads,
    )
    if not manifest.checksums:
        raise AssemblyError("Release manifest lists no index files")
    write_text_atomic(layout.release_path, render_manifest(manifest))
    if layout.release_path.stat().st_size == 0:
        raise AssemblyError(f"Generated Release file is empty: {layout.release_path}")
    adapter.info(f"Created {layout.release_path}")

    signatures: Tuple[Path, ...] = ()
    if sign and signer is not None:
        try:
            signatures = sign_manifest(
                layout.release_path,
                signer,
                detached_path=layout.release_signature_path,
                clearsigned_path=layout.inrelease_path,
            )
        except Exception:
            # An unsigned Release must not be served when signing was requested.
            layout.release_path.unlink(missing_ok=True)
            raise

    return AssembleResult(
        fragments=tuple(fragments),
        architectures=tuple(architectures),
        index_files=tuple(index_files),
        compressed_files=tuple(compressed_files),
        release_path=layout.release_path,
        signatures=signatures,
        dropped_entries=groups.dropped,
    )
