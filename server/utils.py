# server/utils.py
from typing import Any, Optional

from flask import jsonify

ALLOWED_EXTENSIONS = {"csv"}

def json_error(msg: str, status: int = 400, detail: Any = None):
    body = {"error": msg}
    if detail is not None:
        body["detail"] = detail
    resp = jsonify(body)
    resp.status_code = status
    return resp

def allowed_file(filename: str) -> bool:
    if not filename or "." not in filename:
        return False
    ext = filename.rsplit(".", 1)[-1].lower()
    return ext in ALLOWED_EXTENSIONS

def int_arg(raw: Optional[str], default: int) -> int:
    """Query-string int; empty or unparseable means `default`."""
    if raw is None or str(raw).strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default
