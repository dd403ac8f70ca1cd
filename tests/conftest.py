"""
Shared fixtures for the isensair test-suite.

The Flask app lives in server/ and imports its siblings as top-level modules
(`from config import Settings`), so both the repo root and server/ go on the
path here, the same way `python server/app.py` sees them.
"""

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).parent.parent
for p in (ROOT, ROOT / "server"):
    if str(p) not in sys.path:
        sys.path.insert(0, str(p))

from isensair import cache  # noqa: E402


@pytest.fixture
def sensor_rows():
    return [
        {"Timestamp": "2024-01-01 00:00:00", "DO_Sensor": 6.5, "pH_Sensor": 7.1},
        {"Timestamp": "2024-01-01 12:00:00", "DO_Sensor": 6.9, "pH_Sensor": 7.0},
        {"Timestamp": "2024-01-02 00:00:00", "DO_Sensor": "n/a", "pH_Sensor": 7.4},
        {"Timestamp": "2024-02-03 08:30:00", "DO_Sensor": 5.8, "pH_Sensor": 6.8},
    ]


@pytest.fixture(autouse=True)
def _empty_cache():
    cache.clear()
    yield
    cache.clear()
