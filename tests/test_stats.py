import pytest

from isensair.stats import (
    MAX_BINS,
    datetime_columns,
    guess_time_key,
    infer_schema,
    make_histogram,
    numeric_columns,
    plot_columns,
    summarize_rows,
)

SCHEMA = {"time": "datetime", "Ph_Sensor": "number", "site": "string", "DO_Sensor": "number"}


def test_column_pickers_keep_schema_order():
    assert numeric_columns(SCHEMA) == ["Ph_Sensor", "DO_Sensor"]
    assert datetime_columns(SCHEMA) == ["time"]


def test_plot_columns_prefers_sensor_channels():
    assert plot_columns(SCHEMA) == ["DO_Sensor"]
    assert plot_columns({"a": "number", "b": "number"}) == ["a", "b"]


def test_infer_schema_from_first_row():
    rows = [{"Timestamp": "01/01/2024 00:00:00", "Device_ID": "VNET-KECHAU-01", "DO_Sensor": "6.1"}]
    assert infer_schema(rows) == {"Timestamp": "datetime", "Device_ID": "number", "DO_Sensor": "number"}
    assert infer_schema([]) == {}


def test_guess_time_key():
    assert guess_time_key(SCHEMA) == "time"
    assert guess_time_key({"Timestamp": "datetime"}) == "Timestamp"
    assert guess_time_key({"sampled_at": "datetime"}) is None


def test_histogram_bins():
    out = make_histogram([0, 1, 2, 10, "abc", None, float("inf")], bins=5)
    assert [b["bin"] for b in out] == [0, 2, 4, 6, 8]
    assert [b["freq"] for b in out] == [2, 1, 0, 0, 1]


def test_histogram_constant_and_empty():
    out = make_histogram([3, 3, 3])
    assert len(out) == 20
    assert out[0] == {"bin": 3, "freq": 3}
    assert sum(b["freq"] for b in out) == 3
    assert make_histogram([]) == []


def test_histogram_bin_count_is_bounded():
    assert len(make_histogram([1, 2, 3], bins=MAX_BINS)) == MAX_BINS
    for bins in (0, MAX_BINS + 1, 2_000_000):
        with pytest.raises(ValueError, match="between 1 and"):
            make_histogram([1, 2, 3], bins=bins)


def test_summarize_rows(sensor_rows):
    s = summarize_rows(sensor_rows)
    assert s["row_count"] == 4
    assert s["time_range"] == {"start": "2024-01-01T00:00:00", "end": "2024-02-03T08:30:00"}
    do = s["parameters"]["DO_Sensor"]
    assert do == {"count": 3, "min": 5.8, "max": 6.9, "mean": 6.4, "latest": 5.8}
    assert s["parameters"]["pH_Sensor"]["count"] == 4
    assert "Timestamp" not in s["parameters"]


def test_summarize_empty():
    assert summarize_rows([]) == {"row_count": 0, "parameters": {}}
