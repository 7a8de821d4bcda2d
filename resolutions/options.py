from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Optional

import yaml

from resolutions.types import PackageName
from resolutions.utils import get_logger, validate_config

logger = get_logger(__name__)

WILDCARD = "*"


@dataclass(frozen=True)
class Selector:
    """Which package names are candidates for dedup: an exact set, or all of them."""

    names: FrozenSet[PackageName] = frozenset()
    wildcard: bool = False

    def matches(self, name: Optional[str]) -> bool:
        if not name:
            return False
        return self.wildcard or name in self.names

    @property
    def empty(self) -> bool:
        return not self.wildcard and not self.names

    def to_option(self):
        return WILDCARD if self.wildcard else sorted(self.names)


def parse_selector(value: Any) -> Selector:
    if isinstance(value, Selector):
        return value
    if value == WILDCARD:
        return Selector(wildcard=True)
    if isinstance(value, str):
        return Selector(names=frozenset([PackageName(value)]))
    if isinstance(value, (list, tuple, set, frozenset)):
        return Selector(names=frozenset(PackageName(str(v)) for v in value))
    return Selector()


def load_config(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        cfg = yaml.safe_load(f) or {}
    validate_config(cfg)
    return cfg


def apply_overrides(cfg: Dict[str, Any], overrides: Optional[Dict[str, Any]]) -> None:
    if not overrides:
        return

    if overrides.get("all_packages"):
        cfg["packages"] = WILDCARD
    elif overrides.get("packages"):
        cfg["packages"] = list(overrides["packages"])

    if overrides.get("rewrite") is not None:
        rw = cfg.setdefault("rewrite", {})
        rw["enabled"] = bool(overrides["rewrite"])

    if overrides.get("out") is not None:
        out = cfg.setdefault("output", {})
        out["path"] = overrides["out"]


def selector_from_config(cfg: Dict[str, Any]) -> Selector:
    selector = parse_selector(cfg.get("packages"))
    if selector.empty:
        logger.info("options: no packages selected, dedup resolution disabled")
    return selector


def rewrite_enabled(cfg: Dict[str, Any]) -> bool:
    return bool((cfg.get("rewrite") or {}).get("enabled", True))
