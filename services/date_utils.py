from datetime import date, datetime, timedelta
from typing import Optional, Union

ZOHO_DATE_FORMAT = "%d-%m-%Y"

# 上流の日付キー・設定値として受け付ける書式
_DATE_FORMATS = (
    "%Y-%m-%d",
    "%d-%m-%Y",
    "%d-%b-%Y",
    "%d/%m/%Y",
)

DateLike = Union[date, datetime, str]

DEFAULT_WEEKEND_DAYS = (5, 6)


def format_date_for_zoho(target: date) -> str:
    """Zoho APIのsdate/edate形式(DD-MM-YYYY)に変換する

    年は常に対象日付自身の年を使う（年跨ぎ・過去年の取得でずれないように）。
    """
    return target.strftime(ZOHO_DATE_FORMAT)


def parse_date(value: DateLike) -> date:
    """date/datetime/文字列を date に変換する。解釈できなければ ValueError"""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValueError(f"日付として解釈できません: {value!r}")

    text = value.strip()
    # "2025-04-29T00:00:00" のような時刻付きISO形式
    if "T" in text:
        text = text.split("T", 1)[0]
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise ValueError(f"日付として解釈できません: {value!r}")


def try_parse_date(value) -> Optional[date]:
    try:
        return parse_date(value)
    except ValueError:
        return None


def is_weekend(target: date, weekend_days=DEFAULT_WEEKEND_DAYS) -> bool:
    return target.weekday() in weekend_days


def date_range(start: date, end: date) -> list[date]:
    """start〜endの日付を昇順で返す（両端含む）"""
    if end < start:
        return []
    return [start + timedelta(days=i) for i in range((end - start).days + 1)]


def last_n_days_range(n: int, today: date) -> tuple[date, date]:
    """今日を含む直近n日間"""
    if n < 1:
        raise ValueError(f"日数は1以上を指定してください: {n}")
    return today - timedelta(days=n - 1), today


def month_range(today: date, days: int = 30) -> tuple[date, date]:
    """月次ビュー用の期間（今日からdays日前〜今日）"""
    return today - timedelta(days=days), today
