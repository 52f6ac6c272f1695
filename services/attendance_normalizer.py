import re
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any, Optional

from services.attendance_models import (
    AttendanceDay,
    STATUS_ABSENT,
    STATUS_PRESENT,
    STATUS_YET_TO_CHECK_IN,
)
from services.date_utils import DEFAULT_WEEKEND_DAYS, is_weekend, try_parse_date

DEFAULT_CHECK_IN_CUTOFF = time(10, 30)

# "29-04-2025 10:20 AM" → "10:20 AM"
_TIMESTAMP_PATTERN = re.compile(
    r"\d{2}-\d{2}-\d{4}\s+(\d{1,2}:\d{2}\s+[AP]M)", re.IGNORECASE
)
_CLOCK_TOKEN_PATTERN = re.compile(r"^\d{1,2}:\d{2}(:\d{2})?$")
_EMPTY_VALUES = ("", "-")


def _now() -> datetime:
    """テスト時にモック可能な現在時刻取得"""
    return datetime.now()


@dataclass(frozen=True)
class DayRecordFields:
    """上流の日次レコードから必要な項目だけを取り出した中間表現"""

    first_in: Optional[str]
    last_out: Optional[str]
    status: Optional[str]
    shift_name: str = ""
    shift_start_time: str = ""
    shift_end_time: str = ""
    location: str = ""
    total_hours: Optional[str] = None


def _clean(value: Any) -> Optional[str]:
    """"-" や空文字を None に寄せる"""
    if value is None:
        return None
    text = str(value).strip()
    if text in _EMPTY_VALUES:
        return None
    return text


def parse_day_record(raw: Any) -> Optional[DayRecordFields]:
    """日次レコードを DayRecordFields に変換する。想定外の形式なら None"""
    if isinstance(raw, list):
        entries = [entry for entry in raw if isinstance(entry, dict)]
        if not entries:
            return None
        return _merge_entries(entries)
    if not isinstance(raw, dict):
        return None
    return DayRecordFields(
        first_in=_clean(raw.get("FirstIn")),
        last_out=_clean(raw.get("LastOut")),
        status=_clean(raw.get("Status")),
        shift_name=_clean(raw.get("ShiftName")) or "",
        shift_start_time=_clean(raw.get("ShiftStartTime")) or "",
        shift_end_time=_clean(raw.get("ShiftEndTime")) or "",
        location=_clean(raw.get("FirstIn_Location")) or "",
        total_hours=_clean(raw.get("TotalHours")),
    )


def _merge_entries(entries: list[dict]) -> DayRecordFields:
    """同日に複数の打刻エントリがある場合は最初の出勤・最後の退勤を採用する"""
    parsed = [parse_day_record(entry) for entry in entries]
    first_in = next((p.first_in for p in parsed if p.first_in), None)
    last_out = next((p.last_out for p in reversed(parsed) if p.last_out), None)
    status = next((p.status for p in parsed if p.status), None)
    head = parsed[0]
    return DayRecordFields(
        first_in=first_in,
        last_out=last_out,
        status=status,
        shift_name=head.shift_name,
        shift_start_time=head.shift_start_time,
        shift_end_time=head.shift_end_time,
        location=next((p.location for p in parsed if p.location), ""),
        total_hours=next((p.total_hours for p in reversed(parsed) if p.total_hours), None),
    )


def extract_time(value: Optional[str]) -> Optional[str]:
    """打刻文字列から "HH:MM AM" 形式の時刻部分を取り出す

    空でない打刻は出勤ありとみなすため、形式が崩れていても None は返さない。
    """
    value = _clean(value)
    if value is None:
        return None

    match = _TIMESTAMP_PATTERN.search(value)
    if match:
        return " ".join(match.group(1).split()).upper()

    # フォールバック: 末尾のトークンから時刻を拾う
    parts = value.split()
    if len(parts) >= 2 and parts[-1].upper() in ("AM", "PM"):
        return f"{parts[-2]} {parts[-1].upper()}"
    for i in range(len(parts) - 1, -1, -1):
        if _CLOCK_TOKEN_PATTERN.match(parts[i]):
            # "10:20:35" や "10:20 IST" のように時刻から始まる末尾
            return " ".join(parts[i:i + 2])
    return " ".join(parts[-2:])


def parse_clock_time(value: Optional[str]) -> Optional[time]:
    """"10:20 AM" / "09:30" 形式を time に変換する"""
    value = _clean(value)
    if value is None:
        return None
    for fmt in ("%I:%M %p", "%H:%M", "%H:%M:%S"):
        try:
            return datetime.strptime(value.upper(), fmt).time()
        except ValueError:
            continue
    return None


def compute_working_hours(
    total_hours: Optional[str],
    check_in_time: Optional[str],
    check_out_time: Optional[str],
) -> float:
    """労働時間(h)。上流の TotalHours("HH:MM") を優先し、なければ出退勤から計算する"""
    if total_hours:
        hours, _, minutes = total_hours.partition(":")
        try:
            return round(int(hours) + int(minutes or 0) / 60, 2)
        except ValueError:
            pass

    start = parse_clock_time(check_in_time)
    end = parse_clock_time(check_out_time)
    if start is None or end is None:
        return 0.0
    minutes = (end.hour * 60 + end.minute) - (start.hour * 60 + start.minute)
    if minutes <= 0:
        return 0.0
    return round(minutes / 60, 2)


def derive_status(
    check_in_time: Optional[str],
    upstream_status: Optional[str],
    day: Optional[date],
    now: datetime,
    cutoff: time = DEFAULT_CHECK_IN_CUTOFF,
) -> str:
    """勤怠ステータスを決定する

    優先順位: 出勤打刻あり > 上流ステータス > 当日カットオフ前の未出勤 > 欠勤
    """
    if check_in_time:
        return STATUS_PRESENT
    if upstream_status:
        return upstream_status
    if day is not None and day == now.date() and now.time() < cutoff:
        return STATUS_YET_TO_CHECK_IN
    return STATUS_ABSENT


def build_default_day(
    employee_id: str,
    day: date,
    fetch_failed: bool = False,
    weekend_days=DEFAULT_WEEKEND_DAYS,
) -> AttendanceDay:
    """データが存在しない日に使う「未出勤」レコードを合成する"""
    return AttendanceDay(
        employee_id=employee_id,
        date=day.isoformat(),
        check_in_time=None,
        check_out_time=None,
        status=STATUS_YET_TO_CHECK_IN,
        is_weekend=is_weekend(day, weekend_days),
        fetch_failed=fetch_failed,
    )


def normalize(
    raw_record: Any,
    date_key: str,
    employee_id: str,
    now: Optional[datetime] = None,
    cutoff: time = DEFAULT_CHECK_IN_CUTOFF,
    weekend_days=DEFAULT_WEEKEND_DAYS,
) -> AttendanceDay:
    """上流の日次レコードを AttendanceDay に正規化する"""
    if now is None:
        now = _now()

    day = try_parse_date(date_key)
    fields = parse_day_record(raw_record)
    if fields is None:
        # 形式不明のレコードは例外にせず既定レコードに落とす
        if day is None:
            return AttendanceDay(
                employee_id=employee_id,
                date=str(date_key),
                check_in_time=None,
                check_out_time=None,
                status=STATUS_YET_TO_CHECK_IN,
                raw_data=raw_record,
            )
        default = build_default_day(employee_id, day, weekend_days=weekend_days)
        default.raw_data = raw_record
        return default

    check_in_time = extract_time(fields.first_in)
    check_out_time = extract_time(fields.last_out)
    status = derive_status(check_in_time, fields.status, day, now, cutoff)

    lowered = status.lower()
    is_holiday = "holiday" in lowered
    is_leave = "leave" in lowered

    return AttendanceDay(
        employee_id=employee_id,
        date=day.isoformat() if day else str(date_key),
        check_in_time=check_in_time,
        check_out_time=check_out_time,
        status=status,
        is_holiday=is_holiday,
        holiday_name=status if is_holiday else "",
        is_weekend=is_weekend(day, weekend_days) if day else False,
        is_leave=is_leave,
        leave_type=status if is_leave else "",
        shift_name=fields.shift_name,
        shift_start_time=fields.shift_start_time,
        shift_end_time=fields.shift_end_time,
        location=fields.location,
        working_hours=compute_working_hours(
            fields.total_hours, check_in_time, check_out_time
        ),
        raw_data=raw_record,
    )
