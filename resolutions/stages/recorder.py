from __future__ import annotations

from typing import Dict, List, Optional, Set

from resolutions.types import EdgeMap, EdgeTarget, NodeId, is_external
from resolutions.utils import get_logger

logger = get_logger(__name__)


class DependencyRecorder:
    """Collects outgoing edges while the dependency stream runs.

    Rows may arrive before or after their node is grouped, and children may
    arrive before parents, so every row is held until the stream ends. The
    snapshot then keeps only the subtrees of marked nodes.
    """

    def __init__(self):
        self._marked: Set[NodeId] = set()
        self._edges: Dict[NodeId, Dict[str, EdgeTarget]] = {}
        self.seen = 0

    def mark(self, node: NodeId) -> None:
        self._marked.add(node)

    def record_edges(self, file_id: str, edges: Optional[EdgeMap]) -> None:
        self.seen += 1
        # external targets are kept verbatim
        self._edges[NodeId(file_id)] = dict(edges or {})

    def snapshot(self) -> Dict[NodeId, Dict[str, EdgeTarget]]:
        kept: Dict[NodeId, Dict[str, EdgeTarget]] = {}
        stack: List[NodeId] = list(self._marked)
        while stack:
            node = stack.pop()
            if node in kept or node not in self._edges:
                continue
            edges = dict(self._edges[node])
            kept[node] = edges
            stack.extend(NodeId(t) for t in edges.values() if not is_external(t))
        logger.info("recorder: rows=%d kept=%d", self.seen, len(kept))
        return kept
