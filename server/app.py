from __future__ import annotations

import os, sys, time, logging
from typing import Any, Dict

from flask import Flask, request, jsonify, make_response

# Make repo root importable (parent of `server` and `isensair`)
BASE_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if BASE_DIR not in sys.path:
    sys.path.insert(0, BASE_DIR)

from dotenv import load_dotenv
load_dotenv(os.path.join(BASE_DIR, ".env"))                     # repo root
load_dotenv(os.path.join(os.path.dirname(__file__), ".env"))    # server/.env

# ---- Imports from shared package ----
from isensair.cache import get_dataset, put_dataset, record_from_clean_payload
from isensair.filters import bucket_time, month_choices
from isensair.llm_insight import InsightError, generate_insight
from isensair.lttb import as_dicts, scatter_points, trend_points
from isensair.remote.ml_service import MLServiceError, process_upload
from isensair.remote.sensor_api import SensorApiClient, SensorApiError, UnsupportedLocationError
from isensair.stats import guess_time_key, infer_schema, MAX_BINS, make_histogram, plot_columns, summarize_rows
from isensair.wecon import load_exports, prepare_rows

from config import Settings
from utils import allowed_file, int_arg, json_error

# ===== App =====
settings = Settings()
ALLOWED_ORIGINS = set(settings.cors_origins)

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)

app = Flask(__name__)
app.config["MAX_CONTENT_LENGTH"] = settings.max_upload_mb * 1024 * 1024

SENSOR_API = SensorApiClient(
    settings.sensor_api_base,
    retries=settings.sensor_api_retries,
    backoff=settings.sensor_api_backoff,
)

# ---- Precise CORS (manual, no Flask-CORS) ----
def _normalize_origin(o: str | None) -> str | None:
    if not o:
        return None
    return o[:-1] if o.endswith("/") else o

@app.before_request
def _handle_preflight():
    # Respond early to CORS preflight with exact origin echo
    if request.method == "OPTIONS":
        origin_raw = request.headers.get("Origin")
        origin = _normalize_origin(origin_raw)
        resp = make_response("", 200)
        if origin and origin in ALLOWED_ORIGINS:
            resp.headers["Access-Control-Allow-Origin"] = origin_raw  # echo exactly
            resp.headers["Vary"] = "Origin"
        resp.headers["Access-Control-Allow-Methods"] = "GET,POST,OPTIONS"
        resp.headers["Access-Control-Allow-Headers"] = "Content-Type"
        return resp

@app.after_request
def _add_cors_headers(resp):
    origin_raw = request.headers.get("Origin")
    origin = _normalize_origin(origin_raw)
    if origin and origin in ALLOWED_ORIGINS:
        resp.headers["Access-Control-Allow-Origin"] = origin_raw  # echo exactly
        resp.headers["Vary"] = "Origin"
    resp.headers.setdefault("Access-Control-Allow-Methods", "GET,POST,OPTIONS")
    resp.headers.setdefault("Access-Control-Allow-Headers", "Content-Type")
    return resp
# -----------------------------------------------

@app.errorhandler(413)
def _too_large(_e):
    return json_error(f"file too large (max {settings.max_upload_mb} MB)", 413)

def _dataset_or_404(dataset_id: str):
    record = get_dataset(dataset_id)
    if record is None:
        return None, json_error("dataset not found", 404)
    return record, None

def _insight_payload(body: Dict[str, Any]) -> Any:
    # the dashboard posts raw rows; summarize them instead of shipping them whole
    payload = body.get("payload")
    if payload is None and body.get("rows"):
        payload = summarize_rows(body["rows"])
    return payload

# ===================================================
# Routes
# ===================================================

@app.get("/health")
def health():
    return jsonify({"ok": True})

@app.post("/api/upload")
def upload():
    """
    Body: multipart/form-data with "file" and optional "datasetId"
    Response: the ML service payload { schema, clean_rows, missing_report, out_of_range_report, ... }
    """
    f = request.files.get("file")
    if f is None:
        return json_error("No file", 400)
    if f.filename and not allowed_file(f.filename):
        return json_error("unsupported file type", 415)
    dataset_id = request.form.get("datasetId") or str(int(time.time() * 1000))
    try:
        raw = f.read()
        payload = process_upload(raw, dataset_id, base_url=settings.ml_service_url)
    except MLServiceError as e:
        return json_error(str(e), 500)
    except Exception as e:
        logger.exception("upload failed for dataset %s", dataset_id)
        return json_error(str(e), 500)

    if isinstance(payload, dict) and payload.get("clean_rows") is not None:
        put_dataset(dataset_id, record_from_clean_payload(payload))
    return jsonify(payload)

@app.post("/api/datasets/<dataset_id>/clean")
def store_clean(dataset_id):
    body = request.get_json(silent=True) or {}
    put_dataset(dataset_id, record_from_clean_payload(body))
    return jsonify({"ok": True})

@app.get("/api/datasets/<dataset_id>/clean")
def get_clean(dataset_id):
    return jsonify({"ok": True, "dataset": dataset_id})

@app.get("/api/datasets/<dataset_id>/scatter")
def dataset_scatter(dataset_id):
    record, err = _dataset_or_404(dataset_id)
    if err:
        return err
    cols = plot_columns(record.schema or infer_schema(record.rows))
    x_key = request.args.get("x") or (cols[0] if cols else "")
    y_key = request.args.get("y") or (cols[1] if len(cols) > 1 else x_key)
    threshold = int_arg(request.args.get("threshold"), settings.draw_limit)
    try:
        pts = scatter_points(record.rows, x_key, y_key, threshold=threshold)
    except Exception as e:
        logger.exception("scatter failed for %s", dataset_id)
        return json_error(str(e), 500)
    return jsonify({
        "x": x_key,
        "y": y_key,
        "raw_count": len(record.rows),
        "count": len(pts),
        "points": as_dicts(pts),
    })

@app.get("/api/datasets/<dataset_id>/trend")
def dataset_trend(dataset_id):
    record, err = _dataset_or_404(dataset_id)
    if err:
        return err
    schema = record.schema or infer_schema(record.rows)
    time_key = request.args.get("time_key") or guess_time_key(schema)
    if not time_key:
        return json_error("no time column in dataset", 400)
    cols = plot_columns(schema)
    y_key = request.args.get("y") or (cols[0] if cols else "")
    threshold = int_arg(request.args.get("threshold"), settings.draw_limit)
    try:
        pts = trend_points(record.rows, time_key, y_key, threshold=threshold)
    except Exception as e:
        logger.exception("trend failed for %s", dataset_id)
        return json_error(str(e), 500)
    return jsonify({"time_key": time_key, "y": y_key, "count": len(pts), "points": as_dicts(pts)})

@app.get("/api/datasets/<dataset_id>/histogram")
def dataset_histogram(dataset_id):
    record, err = _dataset_or_404(dataset_id)
    if err:
        return err
    column = request.args.get("column")
    if not column:
        return json_error("column is required", 400)
    bins = int_arg(request.args.get("bins"), 20)
    if not 1 <= bins <= MAX_BINS:
        return json_error(f"bins must be between 1 and {MAX_BINS}", 400)
    return jsonify({"column": column, "bins": make_histogram((r.get(column) for r in record.rows), bins)})

@app.get("/api/datasets/<dataset_id>/buckets")
def dataset_buckets(dataset_id):
    record, err = _dataset_or_404(dataset_id)
    if err:
        return err
    time_key = request.args.get("time_key") or guess_time_key(record.schema or infer_schema(record.rows))
    mode = (request.args.get("mode") or "all").lower()
    if not time_key:
        return json_error("no time column in dataset", 400)
    try:
        out = bucket_time(record.rows, time_key, mode)
    except ValueError as e:
        return json_error(str(e), 400)
    return jsonify({"mode": mode, "time_key": time_key, "items": out})

@app.get("/api/datasets/<dataset_id>/months")
def dataset_months(dataset_id):
    record, err = _dataset_or_404(dataset_id)
    if err:
        return err
    time_key = request.args.get("time_key") or guess_time_key(record.schema or infer_schema(record.rows))
    if not time_key:
        return jsonify({"items": []})
    return jsonify({"items": month_choices(record.rows, time_key)})

# ---------------- LLM insight ----------------

def _run_insight(provider: str, body: Dict[str, Any]):
    prompt = (body.get("prompt") or "").strip()
    if not prompt:
        return json_error("prompt is required", 400)
    try:
        text = generate_insight(provider, prompt, _insight_payload(body), body.get("category"))
    except InsightError as e:
        return json_error(str(e), e.status, e.detail)
    except Exception as e:
        logger.exception("insight failed (provider=%s)", provider)
        return json_error("Server error", 500, str(e))
    return jsonify({"text": text})

@app.post("/api/openai")
def insight_openai():
    """
    Body: { prompt, payload? | rows?, provider?: "openai"|"deepseek"|"groq", category? }
    Response: { text }
    """
    body = request.get_json(silent=True) or {}
    return _run_insight(body.get("provider") or "openai", body)

@app.post("/api/deepseek")
def insight_deepseek():
    body = request.get_json(silent=True) or {}
    return _run_insight("deepseek", body)

# ---------------- WECON exports ----------------

@app.get("/api/wecon")
def wecon():
    if not settings.wecon_path:
        return json_error("WECON export unavailable", 500)
    try:
        rows = load_exports(settings.wecon_path)
    except OSError:
        logger.exception("reading WECON exports from %s", settings.wecon_path)
        return json_error("WECON export unavailable", 500)
    try:
        out = prepare_rows(
            rows,
            area=request.args.get("area"),
            start=request.args.get("start"),
            end=request.args.get("end"),
        )
    except ValueError as e:
        return json_error(str(e), 400)
    return jsonify(out)

# ---------------- Remote sensor API ----------------

@app.get("/api/sensors/locations")
def sensor_locations():
    try:
        return jsonify({"locations": SENSOR_API.supported_locations()})
    except SensorApiError as e:
        return json_error(str(e), 502)

@app.get("/api/sensors/latest")
def sensor_latest():
    location = request.args.get("location")
    try:
        record = SENSOR_API.latest(location)
    except UnsupportedLocationError as e:
        return json_error(str(e), 400)
    except SensorApiError as e:
        return json_error(str(e), 502)
    return jsonify({"location": location, "latest": record})

@app.get("/api/sensors/range")
def sensor_range():
    location = request.args.get("location")
    start = request.args.get("start")
    end = request.args.get("end")
    if not start or not end:
        return json_error("start and end are required", 400)
    try:
        records = SENSOR_API.by_date_range(location, start, end)
    except UnsupportedLocationError as e:
        return json_error(str(e), 400)
    except SensorApiError as e:
        return json_error(str(e), 502)
    return jsonify({
        "location": location,
        "start": start,
        "end": end,
        "total_rows": len(records),
        "schema": infer_schema(records),
        "data": records,
    })

if __name__ == "__main__":
    app.run(port=int(os.getenv("PORT", "8000")), debug=True)
