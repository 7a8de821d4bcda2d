from __future__ import annotations

from typing import Callable, Dict, List, Optional

from resolutions.options import Selector
from resolutions.types import NodeId, PackageName
from resolutions.utils import get_logger

logger = get_logger(__name__)


class PackageGrouper:
    """Groups package entry files by package name.

    The host reports a package, then the first file it reads afterwards is
    assumed to be that package's main. Packages replayed from a warm cache emit
    no file event, so their entry is taken from the declared main path instead.
    """

    def __init__(self, selector: Selector, on_member: Optional[Callable[[NodeId], None]] = None):
        self.selector = selector
        self._on_member = on_member
        self._groups: Dict[PackageName, List[NodeId]] = {}
        self._paths: Dict[NodeId, str] = {}
        self._pending: Optional[PackageName] = None

    def observe_package(self, name: Optional[str], entry_hint: Optional[str] = None, *, cached: bool = False) -> None:
        if self._pending is not None:
            logger.debug("grouper: package %s saw no file before the next package, dropped", self._pending)
            self._pending = None
        if not self.selector.matches(name):
            return
        if cached:
            if not entry_hint:
                logger.debug("grouper: cached package %s has no entry path, dropped", name)
                return
            self._add(PackageName(name), NodeId(entry_hint), entry_hint)
            return
        self._pending = PackageName(name)

    def observe_file(self, file_id: str, path: Optional[str] = None) -> None:
        name, self._pending = self._pending, None
        if name is None:
            return
        self._add(name, NodeId(file_id), path or file_id)

    def _add(self, name: PackageName, node: NodeId, path: str) -> None:
        members = self._groups.setdefault(name, [])
        if node in members:
            return
        members.append(node)
        self._paths.setdefault(node, path)
        if self._on_member is not None:
            self._on_member(node)

    def path_of(self, node: NodeId) -> str:
        return self._paths.get(node, node)

    def groups(self) -> Dict[PackageName, List[NodeId]]:
        return {name: list(members) for name, members in self._groups.items()}
