from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Mapping, NewType, Optional, Union

NodeId = NewType("NodeId", str)
PackageName = NewType("PackageName", str)
PositionIndex = NewType("PositionIndex", int)


class _External:
    """Edge target for a dependency left out of the bundle (host-supplied)."""

    _instance: Optional["_External"] = None

    def __new__(cls) -> "_External":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "EXTERNAL"

    def __bool__(self) -> bool:
        return False


EXTERNAL = _External()

EdgeTarget = Union[NodeId, _External, bool, None]
EdgeMap = Mapping[str, EdgeTarget]


def is_external(target: Any) -> bool:
    # the host reports excluded deps as `false`; a missing target is treated the same
    return target is EXTERNAL or target is None or target is False


class Role(str, enum.Enum):
    CANONICAL = "canonical"
    DUPLICATE = "duplicate"


@dataclass(frozen=True)
class Resolution:
    role: Role
    target: Optional[NodeId] = None

    @classmethod
    def canonical(cls) -> "Resolution":
        return cls(Role.CANONICAL)

    @classmethod
    def duplicate(cls, target: NodeId) -> "Resolution":
        return cls(Role.DUPLICATE, target)

    def to_dict(self) -> dict:
        if self.role is Role.DUPLICATE:
            return {"role": self.role.value, "target": self.target}
        return {"role": self.role.value}


class ResolutionMap(Mapping[NodeId, Resolution]):
    """Read-only NodeId -> Resolution view produced once per pass."""

    def __init__(self, entries: Mapping[NodeId, Resolution]):
        self._entries: Dict[NodeId, Resolution] = dict(entries)
        self._canonical: FrozenSet[NodeId] = frozenset(
            node for node, res in self._entries.items() if res.role is Role.CANONICAL
        )

    def __getitem__(self, node: NodeId) -> Resolution:
        return self._entries[node]

    def __iter__(self):
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ResolutionMap):
            return self._entries == other._entries
        return NotImplemented

    def __repr__(self) -> str:
        return f"ResolutionMap({self._entries!r})"

    @property
    def canonical(self) -> FrozenSet[NodeId]:
        return self._canonical

    def is_canonical(self, node: Any) -> bool:
        return node in self._canonical

    def is_duplicate(self, node: Any) -> bool:
        res = self._entries.get(node)
        return res is not None and res.role is Role.DUPLICATE

    def target_of(self, node: Any) -> Optional[NodeId]:
        res = self._entries.get(node)
        if res is None or res.role is not Role.DUPLICATE:
            return None
        return res.target

    def to_dict(self) -> dict:
        return {node: res.to_dict() for node, res in self._entries.items()}


@dataclass(frozen=True)
class SortAnnotation:
    dedupe_target: Optional[NodeId] = None
    dedupe_target_index: Optional[PositionIndex] = None
    reexport_eligible: bool = False
    cleared_default_dedupe: bool = False
