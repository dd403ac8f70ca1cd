from isensair import cache


def test_record_from_clean_payload_defaults():
    rec = cache.record_from_clean_payload({"column_schema": {"a": "number"}})
    assert rec.schema == {"a": "number"}
    assert rec.rows == [] and rec.missing == {} and rec.out_of_range == {}
    assert cache.record_from_clean_payload(None) == cache.DatasetRecord()


def test_put_get_drop():
    rec = cache.DatasetRecord(rows=[{"a": 1}])
    cache.put_dataset("d", rec)
    assert cache.get_dataset("d") is rec
    cache.put_dataset("d", cache.DatasetRecord())
    assert cache.get_dataset("d").rows == []
    assert cache.drop_dataset("d") is True
    assert cache.drop_dataset("d") is False
    assert cache.get_dataset("d") is None
