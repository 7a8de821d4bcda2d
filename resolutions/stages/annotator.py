from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from resolutions.types import EdgeMap, NodeId, PositionIndex, ResolutionMap, SortAnnotation
from resolutions.utils import get_logger

logger = get_logger(__name__)


def reexport_eligible(resolution: ResolutionMap, target: Any, deps: Optional[EdgeMap]) -> bool:
    """A deduped row may re-export its target only when the target is canonical
    and every one of the row's own dependencies is a duplicate as well."""
    if not resolution.is_canonical(target):
        return False
    return all(resolution.is_duplicate(dep) for dep in (deps or {}).values())


class SortAnnotator:
    """Points duplicate rows of the sorted stream at their canonical's position.

    Rows are buffered until the whole order is known, since a duplicate may be
    sorted before its canonical.
    """

    def __init__(self, resolution: ResolutionMap, edges: Optional[Mapping[NodeId, EdgeMap]] = None):
        self.resolution = resolution
        self._edges = edges or {}
        self._index: Dict[NodeId, PositionIndex] = {}
        self._rows: List[dict] = []
        self.annotations: Dict[NodeId, SortAnnotation] = {}

    def write(self, row: dict) -> None:
        self._index[NodeId(row["id"])] = PositionIndex(row["index"])
        self._rows.append(row)

    def _deps_of(self, row: dict) -> Optional[EdgeMap]:
        deps = row.get("deps")
        if deps is None:
            deps = self._edges.get(NodeId(row["id"]))
        return deps

    def _annotate(self, row: dict) -> dict:
        out = dict(row)
        node = NodeId(row["id"])
        target = self.resolution.target_of(node)

        if target is not None:
            target_index = self._index.get(target)
            if target_index is None:
                logger.warning("annotator: %s dedupes to %s which is not in the sorted rows, kept", node, target)
                self.annotations[node] = SortAnnotation()
                return out
            out["dedupe"] = target
            out["dedupe_index"] = target_index
            self.annotations[node] = SortAnnotation(
                dedupe_target=target,
                dedupe_target_index=target_index,
                reexport_eligible=reexport_eligible(self.resolution, target, self._deps_of(row)),
            )
        elif self.resolution.is_canonical(node):
            # a default dedupe on a canonical row could point back into its own duplicates
            had_dedupe = out.pop("dedupe", None) is not None
            had_index = out.pop("dedupe_index", None) is not None
            self.annotations[node] = SortAnnotation(cleared_default_dedupe=had_dedupe or had_index)
        return out

    def end(self) -> List[dict]:
        out = [self._annotate(row) for row in self._rows]
        deduped = sum(1 for a in self.annotations.values() if a.dedupe_target is not None)
        cleared = sum(1 for a in self.annotations.values() if a.cleared_default_dedupe)
        logger.info("annotator: rows=%d deduped=%d cleared=%d", len(out), deduped, cleared)
        return out
