import io

import pytest

import app as server_app
from isensair import cache
from isensair.llm_insight import ProviderFailedError
from isensair.remote.sensor_api import SensorApiError, UnsupportedLocationError

CLEAN_PAYLOAD = {
    "schema": {"Timestamp": "datetime", "DO_Sensor": "number", "pH_Sensor": "number"},
    "clean_rows": [
        {"Timestamp": "2024-01-01 00:00:00", "DO_Sensor": 6.5, "pH_Sensor": 7.1},
        {"Timestamp": "2024-01-15 00:00:00", "DO_Sensor": 7.5, "pH_Sensor": 7.3},
        {"Timestamp": "2024-02-01 00:00:00", "DO_Sensor": 5.5, "pH_Sensor": 6.9},
    ],
    "missing_report": {"DO_Sensor": 0},
    "out_of_range_report": {"pH_Sensor": 1},
}


@pytest.fixture
def client():
    server_app.app.config["TESTING"] = True
    with server_app.app.test_client() as c:
        yield c


@pytest.fixture
def stored(client):
    res = client.post("/api/datasets/ds1/clean", json=CLEAN_PAYLOAD)
    assert res.status_code == 200
    return "ds1"


def test_health(client):
    assert client.get("/health").get_json() == {"ok": True}


def test_cors_echoes_allowed_origin(client, monkeypatch):
    monkeypatch.setattr(server_app, "ALLOWED_ORIGINS", {"http://dash.test"})
    res = client.get("/health", headers={"Origin": "http://dash.test/"})
    assert res.headers["Access-Control-Allow-Origin"] == "http://dash.test/"
    res = client.options("/api/upload", headers={"Origin": "http://evil.test"})
    assert res.status_code == 200
    assert "Access-Control-Allow-Origin" not in res.headers


# ---- upload / clean ----

def test_upload_requires_file(client):
    res = client.post("/api/upload", data={}, content_type="multipart/form-data")
    assert res.status_code == 400
    assert res.get_json() == {"error": "No file"}


def test_upload_rejects_non_csv(client):
    data = {"file": (io.BytesIO(b"x"), "report.pdf")}
    res = client.post("/api/upload", data=data, content_type="multipart/form-data")
    assert res.status_code == 415


def test_upload_forwards_and_caches(client, monkeypatch):
    seen = {}

    def fake_process(raw, dataset_id, base_url=None):
        seen.update(raw=raw, dataset_id=dataset_id)
        return CLEAN_PAYLOAD

    monkeypatch.setattr(server_app, "process_upload", fake_process)
    data = {"file": (io.BytesIO(b"Timestamp,DO_Sensor\n"), "river.csv"), "datasetId": "up-1"}
    res = client.post("/api/upload", data=data, content_type="multipart/form-data")
    assert res.status_code == 200
    assert res.get_json()["schema"] == CLEAN_PAYLOAD["schema"]
    assert seen == {"raw": b"Timestamp,DO_Sensor\n", "dataset_id": "up-1"}
    assert len(cache.get_dataset("up-1").rows) == 3


def test_upload_ml_failure(client, monkeypatch):
    def boom(raw, dataset_id, base_url=None):
        raise server_app.MLServiceError("ML service failed")

    monkeypatch.setattr(server_app, "process_upload", boom)
    data = {"file": (io.BytesIO(b"a\n1\n"), "river.csv")}
    res = client.post("/api/upload", data=data, content_type="multipart/form-data")
    assert res.status_code == 500
    assert res.get_json() == {"error": "ML service failed"}


def test_clean_store_and_get(client, stored):
    rec = cache.get_dataset(stored)
    assert rec.missing == {"DO_Sensor": 0}
    assert rec.out_of_range == {"pH_Sensor": 1}
    assert client.get(f"/api/datasets/{stored}/clean").get_json() == {"ok": True, "dataset": stored}


# ---- plots ----

def test_scatter_unknown_dataset(client):
    assert client.get("/api/datasets/nope/scatter").status_code == 404


def test_scatter_defaults_to_sensor_columns(client, stored):
    body = client.get(f"/api/datasets/{stored}/scatter").get_json()
    assert (body["x"], body["y"]) == ("DO_Sensor", "pH_Sensor")
    assert body["count"] == 3
    assert body["points"][0] == {"x": 6.5, "y": 7.1}


def test_scatter_threshold(client, monkeypatch):
    rows = [{"a": i, "b": i % 7} for i in range(300)]
    cache.put_dataset("big", cache.DatasetRecord(schema={"a": "number", "b": "number"}, rows=rows))
    body = client.get("/api/datasets/big/scatter?x=a&y=b&threshold=25").get_json()
    assert body["raw_count"] == 300
    assert body["count"] == 25
    assert body["points"][0] == {"x": 0.0, "y": 0.0}
    assert body["points"][-1] == {"x": 299.0, "y": float(299 % 7)}


def test_trend(client, stored):
    body = client.get(f"/api/datasets/{stored}/trend?y=DO_Sensor").get_json()
    assert body["time_key"] == "Timestamp"
    assert [p["y"] for p in body["points"]] == [6.5, 7.5, 5.5]


def test_histogram(client, stored):
    res = client.get(f"/api/datasets/{stored}/histogram?column=DO_Sensor&bins=2")
    assert res.get_json()["bins"] == [{"bin": 5.5, "freq": 1}, {"bin": 6.5, "freq": 2}]
    assert client.get(f"/api/datasets/{stored}/histogram").status_code == 400


def test_histogram_bins_bounds(client, stored):
    url = f"/api/datasets/{stored}/histogram?column=DO_Sensor&bins="
    assert len(client.get(url + "200").get_json()["bins"]) == 200
    for bins in ("0", "201", "1000000000"):
        res = client.get(url + bins)
        assert res.status_code == 400
        assert res.get_json() == {"error": "bins must be between 1 and 200"}


def test_oversized_upload_is_json_413(client, monkeypatch):
    monkeypatch.setitem(server_app.app.config, "MAX_CONTENT_LENGTH", 10)
    data = {"file": (io.BytesIO(b"x" * 100), "river.csv")}
    res = client.post("/api/upload", data=data, content_type="multipart/form-data")
    assert res.status_code == 413
    assert res.get_json()["error"].startswith("file too large")


def test_buckets_and_months(client, stored):
    body = client.get(f"/api/datasets/{stored}/buckets?mode=monthly").get_json()
    assert [(b["__bucket"], len(b["__rows"])) for b in body["items"]] == [("2024-01", 2), ("2024-02", 1)]
    assert client.get(f"/api/datasets/{stored}/buckets?mode=hourly").status_code == 400
    months = client.get(f"/api/datasets/{stored}/months").get_json()["items"]
    assert [m["value"] for m in months] == ["2024-01", "2024-02"]


# ---- insight ----

def test_openai_route_summarizes_rows(client, monkeypatch):
    calls = []

    def fake_insight(provider, prompt, payload, category=None):
        calls.append((provider, prompt, payload, category))
        return "insight"

    monkeypatch.setattr(server_app, "generate_insight", fake_insight)
    res = client.post("/api/openai", json={
        "prompt": "Weekly summary?",
        "category": "Performance Summary",
        "rows": CLEAN_PAYLOAD["clean_rows"],
    })
    assert res.get_json() == {"text": "insight"}
    provider, prompt, payload, category = calls[0]
    assert provider == "openai"
    assert payload["row_count"] == 3
    assert payload["parameters"]["DO_Sensor"]["max"] == 7.5


def test_openai_route_passes_provider_and_payload(client, monkeypatch):
    calls = []
    monkeypatch.setattr(server_app, "generate_insight",
                        lambda provider, prompt, payload, category=None: calls.append((provider, payload)) or "ok")
    client.post("/api/openai", json={"prompt": "p", "payload": {"k": 1}, "provider": "deepseek"})
    client.post("/api/deepseek", json={"prompt": "p", "payload": {"k": 2}})
    assert calls == [("deepseek", {"k": 1}), ("deepseek", {"k": 2})]


def test_insight_errors_map_to_status(client, monkeypatch):
    def failing(provider, prompt, payload, category=None):
        raise ProviderFailedError("DeepSeek API failed", detail={"error": "quota"})

    monkeypatch.setattr(server_app, "generate_insight", failing)
    res = client.post("/api/deepseek", json={"prompt": "p", "payload": {}})
    assert res.status_code == 502
    assert res.get_json() == {"error": "DeepSeek API failed", "detail": {"error": "quota"}}
    assert client.post("/api/openai", json={}).status_code == 400


def test_unknown_provider(client, monkeypatch):
    res = client.post("/api/openai", json={"prompt": "p", "payload": {}, "provider": "nope"})
    assert res.status_code == 400
    assert res.get_json()["error"] == "Invalid provider"


# ---- WECON ----

def test_wecon_unconfigured(client, monkeypatch):
    monkeypatch.setattr(server_app.settings, "wecon_path", None)
    res = client.get("/api/wecon")
    assert res.status_code == 500
    assert res.get_json()["error"] == "WECON export unavailable"


def test_wecon_reads_exports(client, monkeypatch, tmp_path):
    (tmp_path / "dump.csv").write_text(
        "Device_ID,Timestamp,DO_Sensor\n"
        "VNET-BILUT-01,02/01/2024 00:00:00,4.5\n"
        "VNET-KECHAU-01,01/01/2024 00:00:00,6.25\n",
        encoding="utf-8",
    )
    monkeypatch.setattr(server_app.settings, "wecon_path", str(tmp_path))
    out = client.get("/api/wecon?area=kechau").get_json()
    assert out == [{"Device_ID": "VNET-KECHAU-01", "Timestamp": "01/01/2024 00:00:00", "DO_Sensor": "6.25"}]
    assert client.get("/api/wecon?start=2024-13-01&end=2024-01-02").status_code == 400


# ---- remote sensor API ----

class StubSensorApi:
    def supported_locations(self):
        return ["kechau"]

    def latest(self, location):
        if location != "kechau":
            raise UnsupportedLocationError(f"Unsupported location: {location}")
        return None

    def by_date_range(self, location, start, end):
        if location == "down":
            raise SensorApiError("Failed to fetch data by date range: 500 - x", 500)
        return [{"Timestamp": "t", "DO_Sensor": 1}]


def test_sensor_routes(client, monkeypatch):
    monkeypatch.setattr(server_app, "SENSOR_API", StubSensorApi())
    assert client.get("/api/sensors/locations").get_json() == {"locations": ["kechau"]}
    assert client.get("/api/sensors/latest?location=kechau").get_json() == {"location": "kechau", "latest": None}
    assert client.get("/api/sensors/latest?location=mars").status_code == 400

    body = client.get("/api/sensors/range?location=kechau&start=2024-01-01&end=2024-01-02").get_json()
    assert body["total_rows"] == 1
    assert body["schema"] == {"Timestamp": "datetime", "DO_Sensor": "number"}
    assert client.get("/api/sensors/range?location=down&start=a&end=b").status_code == 502
    assert client.get("/api/sensors/range?location=kechau").status_code == 400
