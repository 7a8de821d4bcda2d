from __future__ import annotations

from collections import deque
from typing import Callable, Deque, Dict, List, Mapping, Optional, Tuple

from resolutions.types import (
    EdgeTarget,
    NodeId,
    PackageName,
    Resolution,
    ResolutionMap,
    Role,
    is_external,
)
from resolutions.utils import get_logger

logger = get_logger(__name__)

EdgeIndex = Mapping[NodeId, Mapping[str, EdgeTarget]]


def _order_candidates(members: List[NodeId], path_of: Callable[[NodeId], str]) -> List[NodeId]:
    # sorted() is stable, so equal path lengths keep first-seen order
    return sorted(members, key=lambda node: len(path_of(node)))


def _is_duplicate(entries: Dict[NodeId, Resolution], node: NodeId) -> bool:
    res = entries.get(node)
    return res is not None and res.role is Role.DUPLICATE


def _assign_groups(
    groups: Mapping[PackageName, List[NodeId]],
    path_of: Callable[[NodeId], str],
    entries: Dict[NodeId, Resolution],
    frontier: Deque[Tuple[NodeId, NodeId]],
) -> int:
    resolved_groups = 0
    for name, members in groups.items():
        if len(members) < 2:
            continue
        candidates = [m for m in _order_candidates(members, path_of) if not _is_duplicate(entries, m)]
        if len(candidates) < 2:
            continue
        canonical = candidates[0]
        entries.setdefault(canonical, Resolution.canonical())
        resolved_groups += 1
        for node in candidates[1:]:
            if node in entries:
                # canonical for another package; canonical status wins
                logger.debug("resolver: %s stays canonical, not deduped into %s (%s)", node, canonical, name)
                continue
            entries[node] = Resolution.duplicate(canonical)
            frontier.append((node, canonical))
    return resolved_groups


def _propagate(
    edges: EdgeIndex,
    entries: Dict[NodeId, Resolution],
    frontier: Deque[Tuple[NodeId, NodeId]],
) -> int:
    """Align each duplicate's edges with its canonical's, until no new pairs appear."""
    added = 0
    while frontier:
        dup, canonical = frontier.popleft()
        dup_edges = edges.get(dup) or {}
        canonical_edges = edges.get(canonical) or {}
        for specifier, child in dup_edges.items():
            if is_external(child):
                continue
            child = NodeId(child)
            if child in entries:
                continue
            target = canonical_edges.get(specifier)
            if is_external(target):
                logger.debug("resolver: %s %r has no bundled counterpart under %s, kept", dup, specifier, canonical)
                continue
            target = NodeId(target)
            if _is_duplicate(entries, target):
                target = entries[target].target
            if target == child:
                continue
            entries[child] = Resolution.duplicate(target)
            entries.setdefault(target, Resolution.canonical())
            frontier.append((child, target))
            added += 1
    return added


def resolve(
    groups: Mapping[PackageName, List[NodeId]],
    edges: EdgeIndex,
    path_of: Optional[Callable[[NodeId], str]] = None,
) -> ResolutionMap:
    """Pick one canonical per package group and dedupe the rest onto it.

    Members are ordered by path length (shorter first, ties by first-seen
    order). Duplicates then pull their dependency subtrees along: for every
    specifier a duplicate shares with its canonical, the duplicate's target is
    deduped onto the canonical's target, unless either side is external. A
    node is resolved at most once, so canonicals never turn into duplicates
    and duplicate pointers cannot form cycles.
    """
    path_of = path_of or (lambda node: node)
    entries: Dict[NodeId, Resolution] = {}
    frontier: Deque[Tuple[NodeId, NodeId]] = deque()

    resolved_groups = _assign_groups(groups, path_of, entries, frontier)
    propagated = _propagate(edges, entries, frontier)

    result = ResolutionMap(entries)
    logger.info(
        "resolver: groups=%d canonical=%d duplicates=%d propagated=%d",
        resolved_groups,
        len(result.canonical),
        len(result) - len(result.canonical),
        propagated,
    )
    return result
