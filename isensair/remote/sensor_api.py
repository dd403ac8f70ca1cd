# remote/sensor_api.py
"""
Client for the iSensAir time-series backend.

Endpoints:
- GET /                   -> {"status": "ok", "locations": ["semantan", "kechau"]}
- GET /latest             -> {"location", "file", "latest": {...}}
- GET /by-date-range      -> {"location", "start", "end", "files_used", "total_rows", "data": [...]}

Dates are YYYY-MM-DD. Records may carry `timestamp`; we mirror it to
`Timestamp` so they line up with uploaded/WECON rows.
"""
from __future__ import annotations
import logging
import os
from typing import Any, Dict, List, Optional

import requests

from isensair.remote.http_retry import fetch_with_retry

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://isensair-backend.onrender.com"


class SensorApiError(RuntimeError):
    def __init__(self, message: str, status: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status = status
        self.body = body


class UnsupportedLocationError(ValueError):
    pass


def _normalize_record(record: Dict[str, Any]) -> Dict[str, Any]:
    if record.get("timestamp") and not record.get("Timestamp"):
        record["Timestamp"] = record["timestamp"]
    return record


class SensorApiClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        retries: int = 5,
        backoff: float = 1.0,
        session: Optional[requests.Session] = None,
    ):
        base = base_url or os.getenv("SENSOR_API_BASE", DEFAULT_BASE_URL)
        self.base_url = base.rstrip("/")
        self.retries = retries
        self.backoff = backoff
        self.session = session or requests.Session()
        self._locations: Optional[List[str]] = None

    def _get(self, path: str, params: Optional[Dict[str, str]] = None) -> requests.Response:
        url = f"{self.base_url}{path}"
        logger.info("Fetching %s params=%s", url, params)
        try:
            return fetch_with_retry(url, retries=self.retries, backoff=self.backoff,
                                    session=self.session, params=params)
        except requests.RequestException as e:
            raise SensorApiError(f"Sensor API unreachable: {type(e).__name__}") from e

    @staticmethod
    def _body(res: requests.Response) -> Dict[str, Any]:
        # sleeping hosts answer 200 with an HTML splash page
        try:
            body = res.json()
        except ValueError:
            body = None
        if not isinstance(body, dict):
            logger.error("Sensor API returned non-object body (%d)", res.status_code)
            raise SensorApiError("Sensor API returned invalid JSON", res.status_code, res.text)
        return body

    def supported_locations(self) -> List[str]:
        if self._locations is not None:
            return self._locations
        res = self._get("/")
        if not res.ok:
            raise SensorApiError(f"Failed to fetch supported locations: {res.status_code}",
                                 res.status_code, res.text)
        locs = self._body(res).get("locations") or []
        self._locations = [str(l).lower() for l in locs]
        return self._locations

    def validate_location(self, location: Optional[str]) -> str:
        if not location:
            raise UnsupportedLocationError("Location parameter is required")
        norm = location.lower()
        if norm not in self.supported_locations():
            raise UnsupportedLocationError(f"Unsupported location: {location}")
        return norm

    def latest(self, location: str) -> Optional[Dict[str, Any]]:
        self.validate_location(location)
        res = self._get("/latest", {"location": location})
        if res.status_code == 404:
            return None
        if not res.ok:
            logger.error("Sensor API error %d: %s", res.status_code, res.text)
            raise SensorApiError(f"Failed to fetch latest data: {res.status_code} - {res.text}",
                                 res.status_code, res.text)
        record = self._body(res).get("latest")
        return _normalize_record(record) if record else None

    def by_date_range(self, location: str, start: str, end: str) -> List[Dict[str, Any]]:
        self.validate_location(location)
        res = self._get("/by-date-range", {"location": location, "start": start, "end": end})
        if res.status_code == 404:
            return []
        if not res.ok:
            logger.error("Sensor API error %d: %s", res.status_code, res.text)
            raise SensorApiError(f"Failed to fetch data by date range: {res.status_code} - {res.text}",
                                 res.status_code, res.text)
        records = self._body(res).get("data") or []
        records = [_normalize_record(r) for r in records]
        logger.info("Fetched %d records from %s", len(records), location)
        return records
