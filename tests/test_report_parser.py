from services.report_parser import (
    DateMapPayload,
    EmptyPayload,
    EnvelopePayload,
    parse_report_payload,
)


def test_flat_date_map():
    """日付キーのフラットな形式を判定できること"""
    payload = parse_report_payload({"2025-04-29": {"FirstIn": "-"}, "2025-04-28": {}})
    assert isinstance(payload, DateMapPayload)
    assert set(payload.days) == {"2025-04-29", "2025-04-28"}


def test_flat_date_map_drops_non_date_keys():
    """日付でないキーは除外されること"""
    payload = parse_report_payload({"2025-04-29": {}, "message": "ok"})
    assert isinstance(payload, DateMapPayload)
    assert list(payload.days) == ["2025-04-29"]


def test_envelope():
    """response.result形式を判定できること"""
    payload = parse_report_payload({"response": {"result": {"29-04-2025": {"FirstIn": "-"}}}})
    assert isinstance(payload, EnvelopePayload)
    assert list(payload.days) == ["29-04-2025"]


def test_envelope_with_list_result():
    """resultが配列の場合もまとめて扱えること"""
    payload = parse_report_payload(
        {"response": {"result": [{"2025-04-28": {}}, {"2025-04-29": {}}]}}
    )
    assert isinstance(payload, EnvelopePayload)
    assert list(payload.days) == ["2025-04-28", "2025-04-29"]


def test_empty_envelope():
    """resultが空なら空扱いになること"""
    payload = parse_report_payload({"response": {"result": {}}})
    assert isinstance(payload, EmptyPayload)
    assert payload.days == {}


def test_empty_and_unknown_shapes():
    """空・想定外の形式は空扱いになること"""
    for data in (None, {}, [], "", {"response": {"errors": {"code": 7000}}}, {"foo": "bar"}, [1, 2]):
        payload = parse_report_payload(data)
        assert isinstance(payload, EmptyPayload)
        assert payload.shape == "empty"
