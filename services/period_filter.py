from datetime import date
from typing import Optional

from services.attendance_models import AttendanceMonth
from services.attendance_normalizer import build_default_day
from services.date_utils import (
    DEFAULT_WEEKEND_DAYS,
    DateLike,
    last_n_days_range,
    month_range,
    parse_date,
    try_parse_date,
)

PERIOD_TODAY = "today"
PERIOD_LAST_3_DAYS = "last3days"
PERIOD_LAST_7_DAYS = "last7days"
PERIOD_MONTH = "month"

PERIODS = (PERIOD_TODAY, PERIOD_LAST_3_DAYS, PERIOD_LAST_7_DAYS, PERIOD_MONTH)


def period_range(period: str, today: date, month_days: int = 30) -> tuple[date, date]:
    """期間名を (開始日, 終了日) に変換する"""
    if period == PERIOD_TODAY:
        return today, today
    if period == PERIOD_LAST_3_DAYS:
        return last_n_days_range(3, today)
    if period == PERIOD_LAST_7_DAYS:
        return last_n_days_range(7, today)
    if period == PERIOD_MONTH:
        return month_range(today, month_days)
    raise ValueError(f"未対応の期間です: {period}")


def filter_by_range(month: AttendanceMonth, start: DateLike, end: DateLike) -> AttendanceMonth:
    """取得済みデータから start〜end（両端含む）のレコードを抜き出す

    入力は変更せず、新しい辞書・リストを返す。日付を解釈できないレコードは除外する。
    """
    start_day = parse_date(start)
    end_day = parse_date(end)

    filtered: AttendanceMonth = {}
    for employee_id, days in month.items():
        kept = []
        for day in days or []:
            record_date = try_parse_date(day.date)
            if record_date is not None and start_day <= record_date <= end_day:
                kept.append(day)
        filtered[employee_id] = kept
    return filtered


def filter_by_period(
    month: AttendanceMonth,
    period: str,
    today: Optional[date] = None,
    month_days: int = 30,
    weekend_days=DEFAULT_WEEKEND_DAYS,
) -> AttendanceMonth:
    """期間名（today / last3days / last7days / month）で絞り込む"""
    if today is None:
        today = date.today()
    start, end = period_range(period, today, month_days)
    filtered = filter_by_range(month, start, end)

    if period == PERIOD_TODAY:
        # 当日ビューは全従業員に必ず1件表示する
        for employee_id, days in filtered.items():
            if not days:
                days.append(build_default_day(employee_id, today, weekend_days=weekend_days))
    return filtered
