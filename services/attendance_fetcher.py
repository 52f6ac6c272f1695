import asyncio
import sys
from datetime import date, datetime, time
from typing import Any, Callable

from services.attendance_models import AttendanceDay, AttendanceMonth
from services.attendance_normalizer import (
    DEFAULT_CHECK_IN_CUTOFF,
    build_default_day,
    normalize,
)
from services.date_utils import (
    DEFAULT_WEEKEND_DAYS,
    date_range,
    format_date_for_zoho,
    last_n_days_range,
    month_range,
    try_parse_date,
)
from services.people_client import PeopleApiClient
from services.report_parser import SHAPE_EMPTY, parse_report_payload
from services.token_manager import AuthError, TokenManager

DEFAULT_MONTH_DAYS = 30


class AttendanceFetcher:
    """複数従業員の勤怠を並列取得し、正規化済みの月次データを組み立てる

    - 従業員ごとに1リクエスト。1人の失敗が他の従業員に影響しない
    - 失敗した従業員には fetch_failed=True の「未出勤」レコードを1件入れる
    - トークン系の致命的エラー(AuthError)は呼び出し元へ伝播する
    """

    def __init__(
        self,
        client: PeopleApiClient,
        token_manager: TokenManager,
        cutoff: time = DEFAULT_CHECK_IN_CUTOFF,
        weekend_days=DEFAULT_WEEKEND_DAYS,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._client = client
        self._token_manager = token_manager
        self._cutoff = cutoff
        self._weekend_days = weekend_days
        self._clock = clock

    async def fetch_range(
        self, employee_ids: list[str], start: date, end: date
    ) -> AttendanceMonth:
        """指定期間の勤怠を全従業員分取得する"""
        # 大量の並列リクエストが期限切れ間際のトークンで走らないよう先に更新しておく
        try:
            await self._token_manager.refresh_access_token()
        except AuthError as e:
            print(f"[AttendanceFetcher] 事前のトークン更新に失敗しました: {e}", file=sys.stderr)

        sdate = format_date_for_zoho(start)
        edate = format_date_for_zoho(end)
        results = await asyncio.gather(
            *(self._client.get_user_report(emp_id, sdate, edate) for emp_id in employee_ids),
            return_exceptions=True,
        )

        now = self._clock()
        attendance: AttendanceMonth = {}
        for emp_id, result in zip(employee_ids, results):
            if isinstance(result, AuthError):
                raise result
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                print(
                    f"[AttendanceFetcher] 従業員 {emp_id} の勤怠取得に失敗しました: {result}",
                    file=sys.stderr,
                )
                attendance[emp_id] = [self._failed_day(emp_id, start, end, now)]
                continue
            attendance[emp_id] = self.build_days(emp_id, result, start, end, now)
        return attendance

    async def fetch_today(self, employee_ids: list[str]) -> AttendanceMonth:
        today = self._clock().date()
        return await self.fetch_range(employee_ids, today, today)

    async def fetch_last_n_days(self, employee_ids: list[str], days: int) -> AttendanceMonth:
        start, end = last_n_days_range(days, self._clock().date())
        return await self.fetch_range(employee_ids, start, end)

    async def fetch_month(
        self, employee_ids: list[str], days: int = DEFAULT_MONTH_DAYS
    ) -> AttendanceMonth:
        start, end = month_range(self._clock().date(), days)
        return await self.fetch_range(employee_ids, start, end)

    def build_days(
        self,
        employee_id: str,
        data: Any,
        start: date,
        end: date,
        now: datetime,
    ) -> list[AttendanceDay]:
        """生レスポンスを期間内の全日付を網羅した AttendanceDay リストにする"""
        payload = parse_report_payload(data)
        if payload.shape == SHAPE_EMPTY:
            print(f"[AttendanceFetcher] 従業員 {employee_id}: {payload.reason}")

        by_date: dict[date, AttendanceDay] = {}
        for date_key, record in payload.days.items():
            if record is None:
                continue
            day = try_parse_date(date_key)
            if day is None or not (start <= day <= end):
                continue
            by_date[day] = normalize(
                record,
                date_key,
                employee_id,
                now=now,
                cutoff=self._cutoff,
                weekend_days=self._weekend_days,
            )

        # 上流に存在しない日付は既定レコードで埋める
        for day in date_range(start, end):
            if day not in by_date:
                by_date[day] = build_default_day(
                    employee_id, day, weekend_days=self._weekend_days
                )

        return [by_date[day] for day in sorted(by_date)]

    def _failed_day(self, employee_id: str, start: date, end: date, now: datetime) -> AttendanceDay:
        today = now.date()
        day = today if start <= today <= end else end
        return build_default_day(
            employee_id, day, fetch_failed=True, weekend_days=self._weekend_days
        )
