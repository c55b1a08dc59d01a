"""Harvest records and the append-only sinks they are written to."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Protocol

from . import config
from .filters import FilterValue
from .page_harvester import RawRow
from .utils import append_json_line, load_json_lines

FILTER_LABEL_KEY = "_filter_label"
FILTER_VALUE_KEY = "_filter_value"
PAGE_KEY = "_page"
TAG_KEYS = (FILTER_LABEL_KEY, FILTER_VALUE_KEY, PAGE_KEY)


class RecordSink(Protocol):
    def append(self, record: Dict[str, str]) -> None: ...


@dataclass(frozen=True)
class HarvestRecord:
    row: RawRow
    filter_value: Optional[FilterValue] = None
    page: Optional[int] = None

    def to_dict(self, *, tagged: bool = True) -> Dict[str, str]:
        payload: Dict[str, str] = dict(self.row)
        if tagged and self.filter_value is not None:
            payload[FILTER_LABEL_KEY] = self.filter_value.label
            payload[FILTER_VALUE_KEY] = self.filter_value.value
        if tagged and self.page is not None:
            payload[PAGE_KEY] = str(self.page)
        return payload


class JsonlRecordSink:
    """Append records to a JSON-lines file, one object per line."""

    def __init__(self, path: Optional[Path] = None) -> None:
        self.path = Path(path) if path is not None else config.RECORDS_FILE
        self.count = 0

    def append(self, record: Dict[str, str]) -> None:
        append_json_line(self.path, record)
        self.count += 1

    def __iter__(self) -> Iterator[Dict[str, str]]:
        for item in load_json_lines(self.path):
            if isinstance(item, dict):
                yield item


def strip_tags(record: Dict[str, str]) -> RawRow:
    return {key: value for key, value in record.items() if key not in TAG_KEYS}


def load_records(path: Optional[Path] = None) -> List[Dict[str, str]]:
    return list(JsonlRecordSink(path))


__all__ = [
    "FILTER_LABEL_KEY",
    "FILTER_VALUE_KEY",
    "HarvestRecord",
    "JsonlRecordSink",
    "PAGE_KEY",
    "RecordSink",
    "load_records",
    "strip_tags",
]
