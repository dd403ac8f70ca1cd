# cache.py
"""In-memory dataset store keyed by dataset id. Nothing survives a restart."""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class DatasetRecord:
    schema: Dict[str, str] = field(default_factory=dict)
    rows: List[Dict[str, Any]] = field(default_factory=list)
    missing: Dict[str, int] = field(default_factory=dict)
    out_of_range: Dict[str, int] = field(default_factory=dict)


DATASETS: Dict[str, DatasetRecord] = {}


def record_from_clean_payload(body: Dict[str, Any]) -> DatasetRecord:
    """Build a record from the ML service's cleaning payload."""
    body = body or {}
    return DatasetRecord(
        schema=dict(body.get("schema") or body.get("column_schema") or {}),
        rows=list(body.get("clean_rows") or []),
        missing=dict(body.get("missing_report") or {}),
        out_of_range=dict(body.get("out_of_range_report") or {}),
    )


def put_dataset(dataset_id: str, record: DatasetRecord) -> None:
    DATASETS[dataset_id] = record


def get_dataset(dataset_id: str) -> Optional[DatasetRecord]:
    return DATASETS.get(dataset_id)


def drop_dataset(dataset_id: str) -> bool:
    return DATASETS.pop(dataset_id, None) is not None


def clear() -> None:
    DATASETS.clear()
