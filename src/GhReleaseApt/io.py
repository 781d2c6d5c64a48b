"""Filesystem helpers shared by the import and assemble pipelines."""

from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path
from typing import List

__all__ = ["write_text_atomic", "remove_stale_arch_dirs"]


def write_text_atomic(path: Path, content: str) -> None:
    """Atomically replace ``path`` with ``content`` to avoid partial writes."""

    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        "w",
        encoding="utf-8",
        newline="",
        dir=path.parent,
        prefix=f".{path.name}.",
        delete=False,
    ) as handle:
        handle.write(content)
        handle.flush()
        try:
            os.fsync(handle.fileno())
        except OSError:
            # Some platforms or filesystems may not support fsync.
            pass
        temp_name = handle.name
    Path(temp_name).replace(path)


def remove_stale_arch_dirs(component_dir: Path, keep: List[str]) -> List[Path]:
    """Delete ``binary-*`` directories whose architecture is not in ``keep``."""

    removed: List[Path] = []
    if not component_dir.is_dir():
        return removed
    wanted = {f"binary-{arch}" for arch in keep}
    for child in sorted(component_dir.iterdir()):
        if child.is_dir() and child.name.startswith("binary-") and child.name not in wanted:
            shutil.rmtree(child)
            removed.append(child)
    return removed
