from __future__ import annotations

import json
from typing import Dict, List, Optional

from resolutions.stages.annotator import reexport_eligible
from resolutions.types import NodeId, ResolutionMap, SortAnnotation
from resolutions.utils import get_logger

logger = get_logger(__name__)

REEXPORT_TEMPLATE = "module.exports = require({ref});"
FACTORY_TEMPLATE = "arguments[4][{ref}][0].apply(exports,arguments)"


def rewrite_row(row: dict, resolution: ResolutionMap, annotation: Optional[SortAnnotation] = None) -> dict:
    """Replace a deduped row's source with a stub pointing at its target.

    Re-exporting returns the target's already-initialized exports, so a library
    runs once. That is only safe when the row's dependencies are all deduped
    too; otherwise the stub re-runs the target's factory, as the default
    dedupe does.
    """
    dedupe = row.get("dedupe")
    dedupe_index = row.get("dedupe_index")
    ref = dedupe_index if dedupe_index is not None else dedupe
    if ref is None:
        return row

    if annotation is not None and annotation.dedupe_target is not None:
        eligible = annotation.reexport_eligible
    else:
        eligible = reexport_eligible(resolution, dedupe, row.get("deps"))

    out = dict(row)
    template = REEXPORT_TEMPLATE if eligible else FACTORY_TEMPLATE
    out["source"] = template.format(ref=json.dumps(ref))
    out["nomap"] = True
    if dedupe_index is not None and out.get("index_deps") is not None:
        out["index_deps"] = dict(out["index_deps"], dup=dedupe_index)
    return out


def rewrite_rows(
    rows: List[dict],
    resolution: ResolutionMap,
    annotations: Optional[Dict[NodeId, SortAnnotation]] = None,
) -> List[dict]:
    annotations = annotations or {}
    out: List[dict] = []
    reexports = 0
    stubs = 0
    for row in rows:
        new = rewrite_row(row, resolution, annotations.get(row.get("id")))
        if new is not row:
            stubs += 1
            if new["source"].startswith("module.exports"):
                reexports += 1
        out.append(new)
    logger.info("rewrite: stubs=%d reexports=%d", stubs, reexports)
    return out
