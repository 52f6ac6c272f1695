from typing import TypedDict, Optional

from services.attendance_models import AttendanceMonth
from services.attendance_summary import AttendanceSummary


class DashboardState(TypedDict):
    today: str                                           # YYYY-MM-DD
    periods: list[str]                                   # 集計対象の期間名
    employee_ids: list[str]                              # 対象従業員ID
    month: AttendanceMonth                               # 取得済みの月次データ
    fetched_at: Optional[str]                            # 取得日時(ISO)
    filtered: dict[str, AttendanceMonth]                 # 期間名 → 絞り込み結果
    summaries: dict[str, dict[str, AttendanceSummary]]   # 期間名 → 従業員別集計
    error_message: Optional[str]                         # 読み込み失敗の内容
    extra: dict                                          # 任意の追加データ
