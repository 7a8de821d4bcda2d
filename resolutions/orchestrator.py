
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from resolutions.events import DepsEvent, FileEvent, PackageEvent, SortEvent, load_events
from resolutions.options import (
    Selector,
    apply_overrides,
    load_config,
    parse_selector,
    rewrite_enabled,
    selector_from_config,
)
from resolutions.stages.annotator import SortAnnotator
from resolutions.stages.grouper import PackageGrouper
from resolutions.stages.recorder import DependencyRecorder
from resolutions.stages.resolver import resolve
from resolutions.stages.rewrite import rewrite_rows
from resolutions.types import NodeId, ResolutionMap, SortAnnotation
from resolutions.utils import get_logger, write_output

logger = get_logger(__name__)


class DedupPass:
    """State of one bundling pass, from the first package event to the sorted rows.

    Grouping and edge recording interleave freely until ``end_dependencies``;
    sorted rows are only accepted after that.
    """

    def __init__(self, selector: Any):
        self.selector: Selector = parse_selector(selector)
        self.recorder = DependencyRecorder()
        self.grouper = PackageGrouper(self.selector, on_member=self.recorder.mark)
        self.resolution: Optional[ResolutionMap] = None
        self._edges: Dict[NodeId, dict] = {}
        self._annotator: Optional[SortAnnotator] = None

    def on_package(self, name: Optional[str], entry: Optional[str] = None, *, cached: bool = False) -> None:
        self._require_open()
        self.grouper.observe_package(name, entry, cached=cached)

    def on_file(self, file_id: str, path: Optional[str] = None) -> None:
        self._require_open()
        self.grouper.observe_file(file_id, path)

    def on_deps(self, file_id: str, deps: Optional[dict]) -> None:
        self._require_open()
        self.recorder.record_edges(file_id, deps)

    def end_dependencies(self) -> ResolutionMap:
        self._require_open()
        groups = self.grouper.groups()
        logger.info(
            "grouper: packages=%d candidates=%d",
            len(groups),
            sum(len(m) for m in groups.values()),
        )
        self._edges = self.recorder.snapshot()
        self.resolution = resolve(groups, self._edges, self.grouper.path_of)
        self._annotator = SortAnnotator(self.resolution, self._edges)
        return self.resolution

    def on_sorted(self, row: dict) -> None:
        if self._annotator is None:
            raise RuntimeError("sorted rows arrived before dependency resolution finished")
        self._annotator.write(row)

    def end_sort(self) -> List[dict]:
        if self._annotator is None:
            raise RuntimeError("sort stream ended before dependency resolution finished")
        return self._annotator.end()

    @property
    def annotations(self) -> Dict[NodeId, SortAnnotation]:
        return self._annotator.annotations if self._annotator is not None else {}

    def _require_open(self) -> None:
        if self.resolution is not None:
            raise RuntimeError("dependency stream already ended for this pass")


class Resolutions:
    """Plugin facade: keeps the selector, hands out a fresh pass per bundle."""

    def __init__(self, options: Any = None):
        self.selector = parse_selector(options)
        self.current: Optional[DedupPass] = None

    def new_pass(self) -> DedupPass:
        if self.current is not None and self.current.resolution is None:
            logger.info("resolutions: discarding unfinished pass")
        self.current = DedupPass(self.selector)
        return self.current


@dataclass
class PassResult:
    resolution: ResolutionMap
    rows: List[dict] = field(default_factory=list)
    annotations: Dict[NodeId, SortAnnotation] = field(default_factory=dict)

    def to_report(self) -> dict:
        return {
            "resolution": self.resolution.to_dict(),
            "annotations": {
                node: {
                    "dedupe_target": a.dedupe_target,
                    "dedupe_target_index": a.dedupe_target_index,
                    "reexport_eligible": a.reexport_eligible,
                    "cleared_default_dedupe": a.cleared_default_dedupe,
                }
                for node, a in self.annotations.items()
            },
            "rows": self.rows,
        }


def replay(events: List[Any], selector: Any, *, rewrite: bool = True) -> PassResult:
    """Drive one full pass from recorded host events."""
    dp = DedupPass(selector)
    for ev in events:
        if isinstance(ev, PackageEvent):
            dp.on_package(ev.name, ev.entry, cached=ev.cached)
        elif isinstance(ev, FileEvent):
            dp.on_file(ev.id, ev.path)
        elif isinstance(ev, DepsEvent):
            dp.on_deps(ev.id, ev.deps)
        elif isinstance(ev, SortEvent):
            if dp.resolution is None:
                dp.end_dependencies()
            dp.on_sorted(ev.to_row())
        else:
            raise ValueError(f"Unknown event: {ev!r}")

    if dp.resolution is None:
        dp.end_dependencies()
    rows = dp.end_sort()
    if rewrite:
        rows = rewrite_rows(rows, dp.resolution, dp.annotations)
    return PassResult(resolution=dp.resolution, rows=rows, annotations=dict(dp.annotations))


def run_once(
    config_path: Optional[str],
    events_path: str,
    *,
    overrides: Optional[Dict[str, Any]] = None,
) -> Optional[str]:
    """Resolve one recorded pass with the given config file and write the report.

    Returns the JSON report when no output path is configured.
    """
    run_id = uuid.uuid4().hex[:8]
    logger.info("=== run start id=%s ===", run_id)

    try:
        cfg = load_config(config_path) if config_path else {}
        apply_overrides(cfg, overrides)
        selector = selector_from_config(cfg)
        events = load_events(events_path)
        logger.info("events loaded=%d selector=%s", len(events), selector.to_option())

        result = replay(events, selector, rewrite=rewrite_enabled(cfg))
        out_path = (cfg.get("output") or {}).get("path")
        text = write_output(result.to_report(), out_path)
        if out_path:
            logger.info("report written: %s", out_path)
            return None
        return text

    except Exception as e:
        logger.error("Resolution pass failed: %s", e)
        raise
    finally:
        logger.info("=== run end id=%s ===", run_id)
