# remote/ml_service.py
from __future__ import annotations
import logging
import os
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)

DEFAULT_ML_URL = "https://naufalrozan-isense-air-service.hf.space"


class MLServiceError(RuntimeError):
    pass


def process_upload(
    raw: bytes,
    dataset_id: str,
    base_url: Optional[str] = None,
    timeout: float = 120,
) -> Dict[str, Any]:
    """
    Forward an uploaded CSV to the classification service's /process endpoint.
    The service returns the cleaning payload: schema, clean_rows,
    missing_report, out_of_range_report (plus its class summary).
    """
    url = (base_url or os.getenv("ML_SERVICE_URL", DEFAULT_ML_URL)).rstrip("/") + "/process"
    logger.info("Forwarding %d bytes for dataset %s to %s", len(raw), dataset_id, url)
    try:
        res = requests.post(
            url,
            files={"file": ("upload.csv", raw, "text/csv")},
            data={"dataset_id": dataset_id},
            timeout=timeout,
        )
    except requests.RequestException as e:
        raise MLServiceError("ML service failed") from e
    if not res.ok:
        logger.error("ML service answered %d: %s", res.status_code, res.text[:500])
        raise MLServiceError("ML service failed")
    return res.json()
