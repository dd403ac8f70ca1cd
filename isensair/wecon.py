# wecon.py
"""
WECON logger exports: one CSV per dump, header row, `Device_ID`, a
`Timestamp` in DD/MM/YYYY HH:mm:ss and the nine *_Sensor channels.

prepare_rows() is what the table view gets: rows for one area's device,
optionally clipped to a date range, with all-zero sensor rows removed,
sorted by time and formatted to 2 decimals.
"""
from __future__ import annotations
import io, logging, math, re
from datetime import date, datetime, time
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd

from isensair.stats import SENSOR_PARAMS

logger = logging.getLogger(__name__)

AREA_DEVICE_MAP: Dict[str, str] = {
    "kechau": "VNET-KECHAU-01",
    "bilut": "VNET-BILUT-01",
    "semantan": "VNET-SEMANTAN-01",
}

ROW_LIMIT = 1000

_NUM_PREFIX = re.compile(r"^\s*[-+]?(\d+\.?\d*|\.\d+)([eE][-+]?\d+)?")


def parse_timestamp(ts: Any) -> Optional[datetime]:
    """'DD/MM/YYYY HH:mm:ss' or 'DD/MM/YYYY, HH:mm:ss' -> naive datetime."""
    if not ts or not isinstance(ts, str):
        return None
    if "," in ts:
        date_part, _, time_part = (s.strip() for s in ts.partition(","))
    else:
        date_part, _, time_part = ts.strip().partition(" ")
    try:
        day, month, year = (int(p) for p in date_part.split("/"))
        hms = [int(p) for p in time_part.split(":")] if time_part.strip() else []
        hms += [0] * (3 - len(hms))
        return datetime(year, month, day, hms[0], hms[1], hms[2])
    except (TypeError, ValueError, IndexError):
        return None


def parse_number(val: Any) -> Optional[float]:
    """Leading-number parse: '7.5 mg/L' -> 7.5, '' -> None."""
    if isinstance(val, (int, float)) and not isinstance(val, bool):
        return None if math.isnan(val) else float(val)
    m = _NUM_PREFIX.match(str(val or ""))
    return float(m.group(0)) if m else None


def read_export(text: str) -> List[Dict[str, str]]:
    if not text.strip():
        return []
    df = pd.read_csv(
        io.StringIO(text),
        dtype=str,
        keep_default_na=False,
        skip_blank_lines=True,
        skipinitialspace=True,
        on_bad_lines="skip",
        engine="python",
    )
    df.columns = [str(c).strip() for c in df.columns]
    df = df.fillna("").apply(lambda col: col.str.strip())
    return df.to_dict(orient="records")


def load_exports(directory: str) -> List[Dict[str, str]]:
    root = Path(directory)
    if not root.is_dir():
        raise FileNotFoundError(f"WECON export directory not found: {directory}")
    rows: List[Dict[str, str]] = []
    for path in sorted(root.glob("*.csv")):
        rows.extend(read_export(path.read_text(encoding="utf-8")))
    logger.info("Loaded %d WECON rows from %s", len(rows), directory)
    return rows


def _parse_day(value: str) -> date:
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        raise ValueError(f"invalid date: {value!r} (expected YYYY-MM-DD)") from None


def prepare_rows(
    rows: List[Dict[str, Any]],
    area: Optional[str] = None,
    start: Optional[str] = None,
    end: Optional[str] = None,
    limit: int = ROW_LIMIT,
) -> List[Dict[str, Any]]:
    device = AREA_DEVICE_MAP.get(area.lower()) if area else None
    if device:
        rows = [r for r in rows if r.get("Device_ID") == device]

    if start and end:
        lo = datetime.combine(_parse_day(start), time.min)
        hi = datetime.combine(_parse_day(end), time.max)
        kept = []
        for r in rows:
            ts = parse_timestamp(r.get("Timestamp"))
            if ts is not None and lo <= ts <= hi:
                kept.append(r)
        rows = kept

    rows = [r for r in rows if any(parse_number(r.get(k)) not in (None, 0.0) for k in SENSOR_PARAMS)]
    rows = sorted(rows, key=lambda r: parse_timestamp(r.get("Timestamp")) or datetime.min)

    out = []
    for r in rows[:limit]:
        row = dict(r)
        for k in SENSOR_PARAMS:
            v = parse_number(row.get(k))
            if v is not None:
                row[k] = f"{v:.2f}"
        out.append(row)
    return out
