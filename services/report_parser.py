"""getUserReport のレスポンス形状判定

上流のレスポンスは次の3通りで返ってくる:

A. 日付キーのフラットなオブジェクト   {"2025-04-29": {...}, ...}
B. response.result に包まれた形式     {"response": {"result": {...}}}
C. 空、または想定外の形式

A → B → C の順に判定し、日付キー → 日次レコードの辞書として取り出す。
"""
import sys
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from services.date_utils import try_parse_date

SHAPE_DATE_MAP = "date_map"
SHAPE_ENVELOPE = "envelope"
SHAPE_EMPTY = "empty"


@dataclass(frozen=True)
class DateMapPayload:
    days: dict[str, Any]
    shape: str = field(default=SHAPE_DATE_MAP, init=False)


@dataclass(frozen=True)
class EnvelopePayload:
    days: dict[str, Any]
    shape: str = field(default=SHAPE_ENVELOPE, init=False)


@dataclass(frozen=True)
class EmptyPayload:
    reason: str
    shape: str = field(default=SHAPE_EMPTY, init=False)

    @property
    def days(self) -> dict[str, Any]:
        return {}


ReportPayload = Union[DateMapPayload, EnvelopePayload, EmptyPayload]


def _date_keys_only(data: dict) -> dict[str, Any]:
    """日付として解釈できるキーのみ残す"""
    days = {}
    for key, value in data.items():
        if try_parse_date(key) is None:
            print(f"[ReportParser] 日付でないキーを無視します: {key!r}", file=sys.stderr)
            continue
        days[key] = value
    return days


def _parse_date_map(data: Any) -> Optional[dict[str, Any]]:
    if not isinstance(data, dict) or not data or "response" in data:
        return None
    if not any(try_parse_date(key) is not None for key in data):
        return None
    return _date_keys_only(data)


def _parse_envelope(data: Any) -> Optional[dict[str, Any]]:
    if not isinstance(data, dict):
        return None
    response = data.get("response")
    if not isinstance(response, dict) or "result" not in response:
        return None

    result = response["result"]
    # result が [{日付: レコード}, ...] の配列で返る場合がある
    if isinstance(result, list):
        merged = {}
        for item in result:
            if isinstance(item, dict):
                merged.update(item)
        result = merged
    if not isinstance(result, dict):
        return None
    return _date_keys_only(result)


def parse_report_payload(data: Any) -> ReportPayload:
    """レスポンス形状を判定して型付きの中間表現を返す"""
    days = _parse_date_map(data)
    if days is not None:
        return DateMapPayload(days=days)

    days = _parse_envelope(data)
    if days is not None:
        if not days:
            return EmptyPayload(reason="response.result が空です")
        return EnvelopePayload(days=days)

    if not data:
        return EmptyPayload(reason="レスポンスが空です")
    return EmptyPayload(reason=f"想定外のレスポンス形式です: {type(data).__name__}")
