# remote/http_retry.py
"""
GET with linear backoff for upstreams that sleep when idle (free-tier hosts
answer 502/503/504 or drop the connection while they spin up).
"""
from __future__ import annotations
import logging
import time
from typing import Any, Callable, Optional

import requests

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {502, 503, 504}


def fetch_with_retry(
    url: str,
    retries: int = 5,
    backoff: float = 1.0,
    session: Optional[requests.Session] = None,
    sleep: Callable[[float], None] = time.sleep,
    **kwargs: Any,
) -> requests.Response:
    """
    Retries gateway errors and network failures up to `retries` times, waiting
    backoff * attempt seconds before each retry. Once retries are exhausted a
    gateway response is returned as-is and a network error is re-raised.
    """
    http = session or requests
    kwargs.setdefault("timeout", 30)
    attempt = 0
    while True:
        try:
            res = http.get(url, **kwargs)
            if res.status_code in RETRYABLE_STATUS_CODES and attempt < retries:
                logger.warning("Upstream %s answered %d, retry %d/%d", url, res.status_code, attempt + 1, retries)
            else:
                return res
        except requests.RequestException as e:
            if attempt >= retries:
                raise
            logger.warning("Upstream %s failed (%s), retry %d/%d", url, type(e).__name__, attempt + 1, retries)
        attempt += 1
        sleep(backoff * attempt)
