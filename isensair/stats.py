# stats.py
from __future__ import annotations
import math
from typing import Any, Dict, Iterable, List, Optional

import numpy as np
import pandas as pd

from isensair.filters import to_timestamp

# The nine probe channels the dashboards plot.
SENSOR_PARAMS = [
    "Tr_Sensor",
    "BOD_Sensor",
    "DO_Sensor",
    "COD_Sensor",
    "NH_Sensor",
    "TDS_Sensor",
    "CT_Sensor",
    "ORP_Sensor",
    "pH_Sensor",
]

TIME_KEY_CANDIDATES = ("time", "timestamp", "datetime", "date")

MAX_BINS = 200


def numeric_columns(schema: Dict[str, str]) -> List[str]:
    return [k for k, t in schema.items() if t == "number"]


def datetime_columns(schema: Dict[str, str]) -> List[str]:
    return [k for k, t in schema.items() if t == "datetime"]


def infer_schema(rows: List[Dict[str, Any]]) -> Dict[str, str]:
    """Schema for rows that arrive without one (remote API / WECON exports)."""
    if not rows:
        return {}
    return {k: ("datetime" if "time" in k.lower() else "number") for k in rows[0].keys()}


def guess_time_key(schema: Dict[str, str]) -> Optional[str]:
    for k in schema:
        if k.lower() in TIME_KEY_CANDIDATES:
            return k
    return None


def plot_columns(schema: Dict[str, str]) -> List[str]:
    """Numeric sensor columns, falling back to every numeric column."""
    nums = numeric_columns(schema)
    sensors = [k for k in SENSOR_PARAMS if k in nums]
    return sensors or nums


def make_histogram(values: Iterable[Any], bins: int = 20) -> List[Dict[str, float]]:
    if not 1 <= bins <= MAX_BINS:
        raise ValueError(f"bins must be between 1 and {MAX_BINS}")
    nums = pd.to_numeric(pd.Series(list(values), dtype=object), errors="coerce").astype(float)
    xs = sorted(nums[np.isfinite(nums)].tolist())
    if not xs:
        return []
    lo, hi = xs[0], xs[-1]
    step = (hi - lo) / bins or 1
    counts = [0] * bins
    for x in xs:
        counts[min(bins - 1, math.floor((x - lo) / step))] += 1
    return [{"bin": lo + i * step, "freq": counts[i]} for i in range(bins)]


def summarize_rows(rows: List[Dict[str, Any]], columns: Optional[List[str]] = None) -> Dict[str, Any]:
    """
    Compact summary handed to the LLM instead of raw rows:
    { row_count, time_range?, parameters: {col: {count,min,max,mean,latest}} }
    """
    out: Dict[str, Any] = {"row_count": len(rows), "parameters": {}}
    if not rows:
        return out
    df = pd.DataFrame.from_records(rows)
    schema = infer_schema(rows)

    tkey = guess_time_key(schema) or next((k for k in df.columns if "time" in str(k).lower()), None)
    if tkey is not None:
        stamps = [ts for ts in (to_timestamp(v) for v in df[tkey]) if ts is not None]
        if stamps:
            out["time_range"] = {"start": min(stamps).isoformat(), "end": max(stamps).isoformat()}

    if columns is None:
        columns = [c for c in SENSOR_PARAMS if c in df.columns] or [
            c for c in df.columns if c != tkey
        ]
    for col in columns:
        if col not in df.columns:
            continue
        s = pd.to_numeric(df[col], errors="coerce").astype(float)
        s = s[np.isfinite(s)]
        if s.empty:
            continue
        out["parameters"][str(col)] = {
            "count": int(s.count()),
            "min": round(float(s.min()), 4),
            "max": round(float(s.max()), 4),
            "mean": round(float(s.mean()), 4),
            "latest": round(float(s.iloc[-1]), 4),
        }
    return out
