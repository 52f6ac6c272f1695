from dataclasses import dataclass, field
from typing import Any, Optional

STATUS_PRESENT = "Present"
STATUS_ABSENT = "Absent"
STATUS_HOLIDAY = "Holiday"
STATUS_WEEKEND = "Weekend"
STATUS_LEAVE = "Leave"
STATUS_YET_TO_CHECK_IN = "Yet to Check In"


@dataclass
class AttendanceDay:
    """1従業員・1日分の正規化済み勤怠レコード"""

    employee_id: str
    date: str                           # YYYY-MM-DD（解釈できない場合は上流キーのまま）
    check_in_time: Optional[str]        # 表示形式 "HH:MM AM"
    check_out_time: Optional[str]
    status: str
    is_holiday: bool = False
    holiday_name: str = ""
    is_weekend: bool = False
    is_leave: bool = False
    leave_type: str = ""
    shift_name: str = ""
    shift_start_time: str = ""
    shift_end_time: str = ""
    location: str = ""
    working_hours: float = 0.0
    fetch_failed: bool = False          # 取得失敗時に合成したレコード
    raw_data: Any = field(default=None, compare=True, repr=False)

    @property
    def category(self) -> str:
        """出勤/欠勤/祝日/週末/休暇/未出勤のいずれか一つに分類する"""
        if self.status == STATUS_PRESENT:
            return STATUS_PRESENT
        if self.is_holiday:
            return STATUS_HOLIDAY
        if self.is_leave:
            return STATUS_LEAVE
        if self.is_weekend or "weekend" in self.status.lower():
            return STATUS_WEEKEND
        if self.status == STATUS_YET_TO_CHECK_IN:
            return STATUS_YET_TO_CHECK_IN
        return STATUS_ABSENT

    def to_dict(self) -> dict:
        return {
            "employeeId": self.employee_id,
            "date": self.date,
            "checkInTime": self.check_in_time,
            "checkOutTime": self.check_out_time,
            "status": self.status,
            "isHoliday": self.is_holiday,
            "holidayName": self.holiday_name,
            "isWeekend": self.is_weekend,
            "isLeave": self.is_leave,
            "leaveType": self.leave_type,
            "shiftName": self.shift_name,
            "shiftStartTime": self.shift_start_time,
            "shiftEndTime": self.shift_end_time,
            "location": self.location,
            "workingHours": f"{self.working_hours:.2f}",
            "fetchFailed": self.fetch_failed,
        }


# employee_id -> 日付昇順の AttendanceDay リスト
AttendanceMonth = dict[str, list[AttendanceDay]]
