from datetime import date, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from services.attendance_fetcher import AttendanceFetcher
from services.people_client import PeopleApiError
from services.token_manager import AuthFailureError

NOW = datetime(2025, 4, 29, 12, 0)


def _make_fetcher(report_func, refresh=None):
    client = MagicMock()
    client.get_user_report = AsyncMock(side_effect=report_func)
    token_manager = MagicMock()
    token_manager.refresh_access_token = refresh or AsyncMock(return_value="tok")
    fetcher = AttendanceFetcher(client, token_manager, clock=lambda: NOW)
    return fetcher, client, token_manager


@pytest.mark.asyncio
async def test_example_scenario():
    """フラット形式の1日分のレコードが正規化されること"""

    async def report(emp_id, sdate, edate):
        return {"2025-04-29": {"FirstIn": "29-04-2025 10:20 AM", "LastOut": "-", "Status": None}}

    fetcher, client, _ = _make_fetcher(report)
    result = await fetcher.fetch_range(["E1"], date(2025, 4, 29), date(2025, 4, 29))

    assert list(result) == ["E1"]
    days = result["E1"]
    assert len(days) == 1
    day = days[0]
    assert day.to_dict()["employeeId"] == "E1"
    assert day.date == "2025-04-29"
    assert day.check_in_time == "10:20 AM"
    assert day.check_out_time is None
    assert day.status == "Present"
    assert (day.is_weekend, day.is_holiday, day.is_leave) == (False, False, False)
    client.get_user_report.assert_awaited_once_with("E1", "29-04-2025", "29-04-2025")


@pytest.mark.asyncio
async def test_envelope_shape_and_missing_dates_filled():
    """response.result形式を処理し、欠けた日付を未出勤で埋めること"""

    async def report(emp_id, sdate, edate):
        return {
            "response": {
                "result": {
                    "29-04-2025": {"FirstIn": "29-04-2025 09:00 AM", "LastOut": "-"},
                    "27-04-2025": {"FirstIn": "-", "Status": "Weekend"},
                }
            }
        }

    fetcher, _, _ = _make_fetcher(report)
    result = await fetcher.fetch_range(["E1"], date(2025, 4, 27), date(2025, 4, 29))

    days = result["E1"]
    assert [d.date for d in days] == ["2025-04-27", "2025-04-28", "2025-04-29"]
    assert days[0].status == "Weekend"
    assert days[1].status == "Yet to Check In"
    assert days[2].status == "Present"


@pytest.mark.asyncio
async def test_empty_response_yields_default_records():
    """空レスポンスでも期間内の全日付にレコードがあること"""

    async def report(emp_id, sdate, edate):
        return {"response": {"result": {}}}

    fetcher, _, _ = _make_fetcher(report)
    result = await fetcher.fetch_range(["E1"], date(2025, 4, 28), date(2025, 4, 29))

    days = result["E1"]
    assert [d.date for d in days] == ["2025-04-28", "2025-04-29"]
    assert all(d.status == "Yet to Check In" for d in days)
    assert not any(d.fetch_failed for d in days)


@pytest.mark.asyncio
async def test_records_sorted_and_out_of_range_dropped():
    """日付昇順に並び、期間外のレコードは含まれないこと"""

    async def report(emp_id, sdate, edate):
        return {
            "2025-04-29": {"FirstIn": "29-04-2025 09:00 AM"},
            "2025-04-20": {"FirstIn": "20-04-2025 09:00 AM"},
            "2025-04-28": {"FirstIn": "28-04-2025 09:00 AM"},
        }

    fetcher, _, _ = _make_fetcher(report)
    result = await fetcher.fetch_range(["E1"], date(2025, 4, 28), date(2025, 4, 29))

    assert [d.date for d in result["E1"]] == ["2025-04-28", "2025-04-29"]


@pytest.mark.asyncio
async def test_one_employee_failure_is_isolated():
    """1人の取得失敗が他の従業員に影響せず、失敗フラグ付きで残ること"""

    async def report(emp_id, sdate, edate):
        if emp_id == "E2":
            raise PeopleApiError("boom")
        return {"2025-04-29": {"FirstIn": "29-04-2025 09:00 AM"}}

    fetcher, _, _ = _make_fetcher(report)
    result = await fetcher.fetch_range(["E1", "E2", "E3"], date(2025, 4, 29), date(2025, 4, 29))

    assert set(result) == {"E1", "E2", "E3"}
    assert result["E1"][0].status == "Present"
    assert result["E3"][0].status == "Present"
    failed = result["E2"]
    assert len(failed) == 1
    assert failed[0].fetch_failed is True
    assert failed[0].status == "Yet to Check In"
    assert failed[0].date == "2025-04-29"


@pytest.mark.asyncio
async def test_failed_record_uses_range_end_when_today_outside():
    """期間に今日が含まれない場合、失敗レコードは期間末日になること"""

    async def report(emp_id, sdate, edate):
        raise PeopleApiError("boom")

    fetcher, _, _ = _make_fetcher(report)
    result = await fetcher.fetch_range(["E1"], date(2025, 3, 1), date(2025, 3, 5))

    assert result["E1"][0].date == "2025-03-05"


@pytest.mark.asyncio
async def test_auth_error_propagates():
    """トークン系のエラーは呼び出し元へ伝播すること"""

    async def report(emp_id, sdate, edate):
        raise AuthFailureError("bad credentials")

    fetcher, _, _ = _make_fetcher(report)
    with pytest.raises(AuthFailureError):
        await fetcher.fetch_range(["E1"], date(2025, 4, 29), date(2025, 4, 29))


@pytest.mark.asyncio
async def test_pre_refresh_failure_is_swallowed():
    """事前のトークン更新失敗は無視して取得を続けること"""

    async def report(emp_id, sdate, edate):
        return {"2025-04-29": {"FirstIn": "29-04-2025 09:00 AM"}}

    refresh = AsyncMock(side_effect=AuthFailureError("rate"))
    fetcher, _, token_manager = _make_fetcher(report, refresh=refresh)
    result = await fetcher.fetch_range(["E1"], date(2025, 4, 29), date(2025, 4, 29))

    refresh.assert_awaited_once()
    assert result["E1"][0].status == "Present"


@pytest.mark.asyncio
async def test_dates_use_real_year_across_year_boundary():
    """年跨ぎの期間では各日付の実際の年を使うこと"""

    async def report(emp_id, sdate, edate):
        return {}

    fetcher, client, _ = _make_fetcher(report)
    await fetcher.fetch_range(["E1"], date(2024, 12, 30), date(2025, 1, 2))

    client.get_user_report.assert_awaited_once_with("E1", "30-12-2024", "02-01-2025")


@pytest.mark.asyncio
async def test_fetch_last_n_days_and_month_ranges():
    """直近N日・月次の期間が正しく計算されること"""

    async def report(emp_id, sdate, edate):
        return {}

    fetcher, client, _ = _make_fetcher(report)

    result = await fetcher.fetch_last_n_days(["E1"], 7)
    assert len(result["E1"]) == 7
    assert result["E1"][0].date == "2025-04-23"

    result = await fetcher.fetch_month(["E1"])
    assert len(result["E1"]) == 31
    client.get_user_report.assert_awaited_with("E1", "30-03-2025", "29-04-2025")

    result = await fetcher.fetch_today(["E1"])
    assert [d.date for d in result["E1"]] == ["2025-04-29"]
