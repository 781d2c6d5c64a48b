# === NAVMAP v1 ===
# {
#   "module": "GhReleaseApt.planning",
#   "purpose": "Decide which release assets need fetching and materialise them with bounded concurrency",
#   "sections": [
#     {"id": "remoteasset", "name": "RemoteAsset", "anchor": "class-remoteasset", "kind": "class"},
#     {"id": "syncaction", "name": "SyncAction", "anchor": "class-syncaction", "kind": "class"},
#     {"id": "syncdecision", "name": "SyncDecision", "anchor": "class-syncdecision", "kind": "class"},
#     {"id": "syncplan", "name": "SyncPlan", "anchor": "class-syncplan", "kind": "class"},
#     {"id": "bytesource", "name": "ByteSource", "anchor": "class-bytesource", "kind": "protocol"},
#     {"id": "decide", "name": "decide", "anchor": "function-decide", "kind": "function"},
#     {"id": "plan-sync", "name": "plan_sync", "anchor": "function-plan-sync", "kind": "function"},
#     {"id": "download-asset", "name": "_download_asset", "anchor": "function-download-asset", "kind": "function"},
#     {"id": "fetch-all", "name": "fetch_all", "anchor": "function-fetch-all", "kind": "function"},
#     {"id": "resolve-skipped", "name": "resolve_skipped", "anchor": "function-resolve-skipped", "kind": "function"},
#     {"id": "materialize-plan", "name": "materialize_plan", "anchor": "function-materialize-plan", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Incremental sync planning for release assets.

Each remote asset is either skipped, because the per-release ``Packages``
fragment already records its digest and the file is on disk, or fetched.  A
skip is never granted on the record alone: a previous run may have written
the index but lost the artifact, so the target file must exist as well.

Fetches run on a bounded thread pool.  Results are always reported in the
order the assets were given, regardless of completion order, and the first
failure aborts the batch.
"""

from __future__ import annotations

import enum
import logging
import os
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Protocol, Sequence, Tuple

from .checksums import Digest, parse_digest
from .errors import AssetFetchError, TransportError

__all__ = [
    "RemoteAsset",
    "SyncAction",
    "SyncDecision",
    "SyncPlan",
    "ByteSource",
    "decide",
    "plan_sync",
    "fetch_all",
    "resolve_skipped",
    "materialize_plan",
]

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class RemoteAsset:
    """Release asset reported by the remote origin."""

    name: str
    url: str
    digest: Optional[str] = None

    @property
    def parsed_digest(self) -> Optional[Digest]:
        return parse_digest(self.digest)


class SyncAction(str, enum.Enum):
    SKIP = "skip"
    FETCH = "fetch"


@dataclass(slots=True, frozen=True)
class SyncDecision:
    """Outcome for one asset: where it lives and whether to download it."""

    action: SyncAction
    asset: RemoteAsset
    path: Path
    reason: str

    @property
    def skipped(self) -> bool:
        return self.action is SyncAction.SKIP


@dataclass(slots=True, frozen=True)
class SyncPlan:
    """Per-asset decisions in input order."""

    decisions: Tuple[SyncDecision, ...] = field(default_factory=tuple)

    @property
    def to_fetch(self) -> Tuple[SyncDecision, ...]:
        return tuple(d for d in self.decisions if d.action is SyncAction.FETCH)

    @property
    def to_skip(self) -> Tuple[SyncDecision, ...]:
        return tuple(d for d in self.decisions if d.action is SyncAction.SKIP)


class ByteSource(Protocol):
    """Transport capability: stream the body at ``url`` as byte chunks."""

    def fetch_bytes(self, url: str) -> Iterator[bytes]: ...


def decide(asset: RemoteAsset, recorded: Optional[str], target: Path) -> SyncDecision:
    """Return the sync decision for a single asset.

    Args:
        asset: Remote asset description.
        recorded: ``SHA256`` recorded for the asset's filename, if any.
        target: Local path the asset would be stored at.
    """

    digest = asset.parsed_digest
    if recorded is None:
        reason = "no recorded checksum"
    elif digest is None:
        reason = "remote digest unavailable"
    elif not digest.usable:
        reason = f"remote digest not usable for comparison ({digest.algorithm or 'untagged'})"
    elif not digest.matches(recorded):
        reason = "checksum changed"
    elif not target.is_file():
        reason = "recorded but missing on disk"
    else:
        return SyncDecision(SyncAction.SKIP, asset, target, "checksum matches")
    return SyncDecision(SyncAction.FETCH, asset, target, reason)


def plan_sync(
    assets: Iterable[RemoteAsset],
    checksum_index: Mapping[str, str],
    target_dir: Path,
) -> SyncPlan:
    """Partition ``assets`` into skip and fetch decisions.

    Args:
        assets: Remote assets in release order.
        checksum_index: Base filename to recorded ``SHA256`` mapping.
        target_dir: Directory the assets are stored in.

    Returns:
        A :class:`SyncPlan` preserving the asset order.
    """

    decisions: List[SyncDecision] = []
    for asset in assets:
        decision = decide(asset, checksum_index.get(asset.name), target_dir / asset.name)
        logger.debug(
            "sync decision",
            extra={
                "stage": "plan",
                "asset": asset.name,
                "action": decision.action.value,
                "reason": decision.reason,
            },
        )
        decisions.append(decision)
    return SyncPlan(decisions=tuple(decisions))


def _download_asset(decision: SyncDecision, transport: ByteSource) -> Path:
    """Stream one asset into a ``.part`` file and move it into place."""

    target = decision.path
    target.parent.mkdir(parents=True, exist_ok=True)
    part_path = target.with_name(target.name + ".part")
    bytes_written = 0
    try:
        with part_path.open("wb") as stream:
            for chunk in transport.fetch_bytes(decision.asset.url):
                if not chunk:
                    continue
                stream.write(chunk)
                bytes_written += len(chunk)
        os.replace(part_path, target)
    except TransportError as exc:
        part_path.unlink(missing_ok=True)
        raise AssetFetchError(decision.asset.name, exc, status_code=exc.status_code) from exc
    except OSError as exc:
        part_path.unlink(missing_ok=True)
        raise AssetFetchError(decision.asset.name, exc) from exc
    logger.info(
        f"Downloaded: {decision.asset.name}",
        extra={"stage": "download", "asset": decision.asset.name, "bytes": bytes_written},
    )
    return target


def fetch_all(
    decisions: Sequence[SyncDecision],
    transport: ByteSource,
    *,
    max_workers: int = 4,
) -> List[Path]:
    """Download every decision in ``decisions`` and return their paths in input order.

    Raises:
        AssetFetchError: For the first asset (in input order) that failed.
    """

    if not decisions:
        return []
    workers = max(1, min(max_workers, len(decisions)))
    results: Dict[int, Path] = {}
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="ghapt-fetch") as executor:
        futures: Dict[Future[Path], int] = {
            executor.submit(_download_asset, decision, transport): index
            for index, decision in enumerate(decisions)
        }
        done, pending = wait(futures, return_when=FIRST_EXCEPTION)
        errors = {
            futures[future]: future.exception()
            for future in done
            if future.exception() is not None
        }
        if errors:
            for future in pending:
                future.cancel()
            raise errors[min(errors)]  # type: ignore[misc]
        for future in done:
            results[futures[future]] = future.result()
    return [results[index] for index in range(len(decisions))]


def resolve_skipped(decisions: Sequence[SyncDecision]) -> List[Path]:
    """Return the existing local paths of skipped decisions."""

    return [decision.path for decision in decisions]


def materialize_plan(
    plan: SyncPlan,
    transport: ByteSource,
    *,
    max_workers: int = 4,
) -> List[Path]:
    """Fetch what the plan requires and return all local artifact paths in asset order."""

    fetched = iter(fetch_all(plan.to_fetch, transport, max_workers=max_workers))
    skipped = iter(resolve_skipped(plan.to_skip))
    for decision in plan.to_skip:
        logger.info(
            f"Skipped (unchanged): {decision.asset.name}",
            extra={"stage": "download", "asset": decision.asset.name},
        )
    return [next(skipped) if d.skipped else next(fetched) for d in plan.decisions]
