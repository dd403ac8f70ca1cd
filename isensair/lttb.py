# lttb.py
"""
Largest-Triangle-Three-Buckets downsampling for the scatter and trend views.

Design:
- lttb_indices(xs, ys, threshold) picks the source indices to keep.
- downsample(points, threshold) returns those points as a new list.
- scatter_points / trend_points turn sensor rows into plot points: coerce to
  numbers, drop non-finite values, then downsample to the draw budget.

Notes:
- Bucket edges are floor((i+1)*bucket_size) with a real-valued bucket size.
  Keep it that way, otherwise the picked points drift from what the charts
  have always shown.
- downsample() itself does not filter NaN/inf; callers do (see scatter_points).
"""

from __future__ import annotations
import math
from typing import Any, Dict, List, NamedTuple, Optional, Sequence

import numpy as np
import pandas as pd

from isensair.filters import to_timestamp

DRAW_LIMIT = 2_000
RAW_LIMIT = 100_000


class Point(NamedTuple):
    x: float
    y: float


def lttb_indices(xs: Sequence[float], ys: Sequence[float], threshold: int = DRAW_LIMIT) -> List[int]:
    """
    Indices (strictly increasing) of the points LTTB keeps out of len(xs).
    """
    n = len(xs)
    if threshold >= n or threshold <= 0 or n <= 2:
        return list(range(n))
    if threshold <= 2:
        return [0, n - 1]

    bucket_size = (n - 2) / (threshold - 2)
    picked = [0]
    a = 0

    for i in range(threshold - 2):
        # centroid of the next bucket
        nxt_start = math.floor((i + 1) * bucket_size) + 1
        nxt_end = min(math.floor((i + 2) * bucket_size) + 1, n)
        span = max(1, nxt_end - nxt_start)
        avg_x = sum(xs[j] for j in range(nxt_start, nxt_end)) / span
        avg_y = sum(ys[j] for j in range(nxt_start, nxt_end)) / span

        # current bucket
        lo = math.floor(i * bucket_size) + 1
        hi = math.floor((i + 1) * bucket_size) + 1

        ax, ay = xs[a], ys[a]
        best_area, best = -1.0, lo
        for j in range(lo, hi):
            area = abs((ax - xs[j]) * (avg_y - ys[j]) - (avg_x - xs[j]) * (ay - ys[j]))
            if area > best_area:
                best_area, best = area, j

        picked.append(best)
        a = best

    picked.append(n - 1)
    return picked


def downsample(points: Sequence[Sequence[float]], threshold: int = DRAW_LIMIT) -> list:
    """
    Reduce an x-ordered series of (x, y) points to `threshold` points.

    First and last points are always kept and order is preserved. Returns a new
    list; the input is never modified. Series of 2 points or fewer, and
    thresholds <= 0 or >= len(points), come back as a plain copy.
    """
    n = len(points)
    if threshold >= n or threshold <= 0 or n <= 2:
        return list(points)
    xs = [p[0] for p in points]
    ys = [p[1] for p in points]
    return [points[i] for i in lttb_indices(xs, ys, threshold)]


# ---- Row helpers (the caller side of downsample) ----

def _finite_xy(frame: pd.DataFrame, x_key: str, y_key: str) -> pd.DataFrame:
    xs = pd.to_numeric(frame[x_key], errors="coerce").astype(float)
    ys = pd.to_numeric(frame[y_key], errors="coerce").astype(float)
    mask = np.isfinite(xs.to_numpy()) & np.isfinite(ys.to_numpy())
    return pd.DataFrame({"x": xs[mask], "y": ys[mask]})


def scatter_points(
    rows: List[Dict[str, Any]],
    x_key: str,
    y_key: str,
    threshold: int = DRAW_LIMIT,
    raw_limit: int = RAW_LIMIT,
) -> List[Point]:
    if not rows:
        return []
    frame = pd.DataFrame.from_records(rows)
    if x_key not in frame.columns or y_key not in frame.columns:
        return []
    xy = _finite_xy(frame, x_key, y_key).head(raw_limit)
    pts = [Point(float(x), float(y)) for x, y in zip(xy["x"], xy["y"])]
    return downsample(pts, threshold)


def trend_points(
    rows: List[Dict[str, Any]],
    time_key: str,
    y_key: str,
    threshold: int = DRAW_LIMIT,
) -> List[Point]:
    """Time series for one parameter; x is epoch milliseconds (UTC-naive)."""
    if not rows:
        return []
    frame = pd.DataFrame.from_records(rows)
    if time_key not in frame.columns or y_key not in frame.columns:
        return []
    ms = [_epoch_ms(to_timestamp(v)) for v in frame[time_key]]
    frame = frame.assign(__ms=ms).sort_values("__ms", kind="stable")
    xy = _finite_xy(frame, "__ms", y_key)
    pts = [Point(float(x), float(y)) for x, y in zip(xy["x"], xy["y"])]
    return downsample(pts, threshold)


def _epoch_ms(ts: Optional[pd.Timestamp]) -> float:
    return float("nan") if ts is None else float(ts.value // 1_000_000)


def as_dicts(points: Sequence[Point]) -> List[Dict[str, float]]:
    return [{"x": p[0], "y": p[1]} for p in points]
