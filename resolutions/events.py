"""Wire models for the host pipeline's event records.

A recorded pass is a JSON array (or JSON lines) of ``package``, ``file``,
``deps`` and ``sort`` records, in the order the host emitted them.
"""

from __future__ import annotations

import json
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from resolutions.utils import load_file

DepTarget = Optional[Union[Literal[False], str]]


class PackageEvent(BaseModel):
    type: Literal["package"]
    name: Optional[str] = None
    entry: Optional[str] = None
    cached: bool = False


class FileEvent(BaseModel):
    type: Literal["file"]
    id: str
    path: Optional[str] = None


class DepsEvent(BaseModel):
    type: Literal["deps"]
    id: str
    deps: Dict[str, DepTarget] = Field(default_factory=dict)


class SortEvent(BaseModel):
    type: Literal["sort"]
    id: str
    index: int
    deps: Optional[Dict[str, DepTarget]] = None
    dedupe: Optional[str] = None
    dedupe_index: Optional[int] = None
    source: Optional[str] = None
    index_deps: Optional[Dict[str, Any]] = None

    def to_row(self) -> dict:
        row = {"id": self.id, "index": self.index}
        for key in ("deps", "dedupe", "dedupe_index", "source", "index_deps"):
            value = getattr(self, key)
            if value is not None:
                row[key] = value
        return row


Event = Annotated[Union[PackageEvent, FileEvent, DepsEvent, SortEvent], Field(discriminator="type")]

_EVENTS_ADAPTER = TypeAdapter(List[Event])


def parse_events(records: List[dict]) -> List[Event]:
    try:
        return _EVENTS_ADAPTER.validate_python(records)
    except ValidationError as e:
        raise ValueError(f"Invalid event record: {e}") from e


def load_events(path: str) -> List[Event]:
    text = load_file(path).strip()
    if not text:
        return []
    if text.startswith("["):
        records = json.loads(text)
    else:
        records = [json.loads(line) for line in text.splitlines() if line.strip()]
    return parse_events(records)
