# filters.py
from __future__ import annotations
from typing import Any, Dict, List, Optional

import pandas as pd

BUCKET_MODES = ("all", "daily", "weekly", "monthly")


def to_timestamp(value: Any) -> Optional[pd.Timestamp]:
    """
    Lenient timestamp parse for row values. Numbers are epoch milliseconds,
    everything else goes through pd.to_datetime. Returns None when invalid.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        if isinstance(value, (int, float)):
            ts = pd.to_datetime(value, unit="ms", errors="coerce")
        else:
            ts = pd.to_datetime(value, errors="coerce")
    except (TypeError, ValueError, OverflowError):
        return None
    if ts is None or pd.isna(ts):
        return None
    if ts.tzinfo is not None:
        ts = ts.tz_convert("UTC").tz_localize(None)
    return ts


def _bucket_key(ts: pd.Timestamp, mode: str) -> str:
    if mode == "daily":
        return ts.strftime("%Y-%m-%d")
    if mode == "weekly":
        # calendar year + ISO week, e.g. 2024-W1
        return f"{ts.year}-W{ts.isocalendar()[1]}"
    return ts.strftime("%Y-%m")


def bucket_time(rows: List[Dict[str, Any]], time_key: str, mode: str):
    if mode not in BUCKET_MODES:
        raise ValueError(f"mode must be one of {'|'.join(BUCKET_MODES)}")
    if mode == "all":
        return rows
    groups: Dict[str, List[Dict[str, Any]]] = {}
    for r in rows:
        ts = to_timestamp(r.get(time_key))
        if ts is None:
            continue
        groups.setdefault(_bucket_key(ts, mode), []).append(r)
    return [{"__bucket": k, "__rows": v} for k, v in groups.items()]


def month_choices(rows: List[Dict[str, Any]], time_key: str) -> List[Dict[str, str]]:
    months = set()
    for r in rows:
        ts = to_timestamp(r.get(time_key))
        if ts is not None:
            months.add(ts.strftime("%Y-%m"))
    return [{"value": m, "label": m} for m in sorted(months)]
