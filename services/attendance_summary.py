from dataclasses import dataclass, asdict
from datetime import time

from services.attendance_models import (
    AttendanceDay,
    AttendanceMonth,
    STATUS_HOLIDAY,
    STATUS_LEAVE,
    STATUS_PRESENT,
    STATUS_WEEKEND,
    STATUS_YET_TO_CHECK_IN,
)
from services.attendance_normalizer import DEFAULT_CHECK_IN_CUTOFF, parse_clock_time


@dataclass
class AttendanceSummary:
    present: int = 0
    absent: int = 0
    holidays: int = 0           # 祝日＋週末
    leaves: int = 0
    yet_to_check_in: int = 0
    unavailable: int = 0        # 取得失敗で実データがない日
    late: int = 0
    total: int = 0
    total_hours: float = 0.0

    def to_dict(self) -> dict:
        data = asdict(self)
        data["total_hours"] = f"{self.total_hours:.2f}"
        return data


def is_late(day: AttendanceDay, late_after: time = DEFAULT_CHECK_IN_CUTOFF) -> bool:
    """シフト開始（不明なら late_after）より後に出勤していれば遅刻"""
    check_in = parse_clock_time(day.check_in_time)
    if check_in is None:
        return False
    threshold = parse_clock_time(day.shift_start_time) or late_after
    return check_in > threshold


def summarize_days(
    days: list[AttendanceDay], late_after: time = DEFAULT_CHECK_IN_CUTOFF
) -> AttendanceSummary:
    summary = AttendanceSummary()
    for day in days:
        summary.total += 1
        if day.fetch_failed:
            summary.unavailable += 1
            continue

        category = day.category
        if category == STATUS_PRESENT:
            summary.present += 1
            summary.total_hours += day.working_hours
            if is_late(day, late_after):
                summary.late += 1
        elif category in (STATUS_HOLIDAY, STATUS_WEEKEND):
            summary.holidays += 1
        elif category == STATUS_LEAVE:
            summary.leaves += 1
        elif category == STATUS_YET_TO_CHECK_IN:
            summary.yet_to_check_in += 1
        else:
            summary.absent += 1

    summary.total_hours = round(summary.total_hours, 2)
    return summary


def summarize_month(
    month: AttendanceMonth, late_after: time = DEFAULT_CHECK_IN_CUTOFF
) -> dict[str, AttendanceSummary]:
    return {
        employee_id: summarize_days(days, late_after)
        for employee_id, days in month.items()
    }


def combine_summaries(summaries: dict[str, AttendanceSummary]) -> AttendanceSummary:
    """従業員ごとの集計を全体の集計にまとめる"""
    total = AttendanceSummary()
    for summary in summaries.values():
        total.present += summary.present
        total.absent += summary.absent
        total.holidays += summary.holidays
        total.leaves += summary.leaves
        total.yet_to_check_in += summary.yet_to_check_in
        total.unavailable += summary.unavailable
        total.late += summary.late
        total.total += summary.total
        total.total_hours += summary.total_hours
    total.total_hours = round(total.total_hours, 2)
    return total


def format_digest(period: str, summaries: dict[str, AttendanceSummary]) -> str:
    """通知用の1期間分のダイジェスト文を作る"""
    total = combine_summaries(summaries)
    lines = [
        f"📊 勤怠サマリー [{period}]（{len(summaries)}名）",
        f"出勤 {total.present} / 欠勤 {total.absent} / 未出勤 {total.yet_to_check_in}"
        f" / 休暇 {total.leaves} / 休日 {total.holidays}",
        f"遅刻 {total.late} / 合計 {total.total_hours:.2f}時間",
    ]
    if total.unavailable:
        lines.append(f"⚠️ 取得失敗 {total.unavailable}件（データなし）")
    return "\n".join(lines)
