from datetime import date, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

import main
from services.attendance_models import AttendanceDay
from services.config_loader import load_config
from services.employee_directory import StaticEmployeeDirectory
from services.token_manager import AuthFailureError


def _month_for(employee_ids):
    today = date.today()
    return {
        emp_id: [
            AttendanceDay(
                employee_id=emp_id,
                date=(today - timedelta(days=i)).isoformat(),
                check_in_time="09:00 AM",
                check_out_time="06:00 PM",
                status="Present",
                working_hours=9.0,
            )
            for i in range(30, -1, -1)
        ]
        for emp_id in employee_ids
    }


@pytest.mark.asyncio
async def test_run_refresh_notifies_each_period():
    """1回の更新で期間ごとに通知し、キャッシュを置き換えること"""
    config = load_config("nonexistent.yaml")
    directory = StaticEmployeeDirectory(["E1", "E2"])
    fetcher = MagicMock()
    fetcher.fetch_month = AsyncMock(return_value=_month_for(["E1", "E2"]))
    notifier = MagicMock()

    state = await main.run_refresh(directory, fetcher, notifier, config)

    assert state["error_message"] is None
    assert notifier.send.call_count == len(config["dashboard"]["periods"])
    assert state["summaries"]["today"]["E1"].present == 1
    assert state["summaries"]["last7days"]["E2"].present == 7
    assert main._state_store["employee_ids"] == ["E1", "E2"]
    assert main._state_store["month"] is state["month"]
    assert main._state_store["fetched_at"] is not None


@pytest.mark.asyncio
async def test_run_refresh_auth_failure():
    """認証失敗時は失敗通知を送り、集計しないこと"""
    config = load_config("nonexistent.yaml")
    directory = StaticEmployeeDirectory(["E1"])
    fetcher = MagicMock()
    fetcher.fetch_month = AsyncMock(side_effect=AuthFailureError("invalid_client"))
    notifier = MagicMock()

    state = await main.run_refresh(directory, fetcher, notifier, config)

    assert "invalid_client" in state["error_message"]
    notifier.send_error.assert_called_once()
    notifier.send.assert_not_called()
    assert state["summaries"] == {}


def test_create_services_requires_employee_source(monkeypatch):
    """従業員の取得元がない場合ConfigErrorになること"""
    monkeypatch.setattr(main, "load_dotenv", lambda: None)
    monkeypatch.setenv("ZOHO_CLIENT_ID", "cid")
    monkeypatch.setenv("ZOHO_CLIENT_SECRET", "secret")
    monkeypatch.setenv("ZOHO_REFRESH_TOKEN", "rtok")
    monkeypatch.delenv("ZOHO_DEPARTMENT_ID", raising=False)

    with pytest.raises(main.ConfigError):
        main.create_services(load_config("nonexistent.yaml"))


def test_create_services_console_fallback(monkeypatch):
    """Slackトークンがない場合コンソール通知になること"""
    monkeypatch.setattr(main, "load_dotenv", lambda: None)
    monkeypatch.setenv("ZOHO_CLIENT_ID", "cid")
    monkeypatch.setenv("ZOHO_CLIENT_SECRET", "secret")
    monkeypatch.setenv("ZOHO_REFRESH_TOKEN", "rtok")
    monkeypatch.delenv("SLACK_BOT_TOKEN", raising=False)

    config = load_config("nonexistent.yaml")
    config["dashboard"]["employee_ids"] = ["E1"]
    token_manager, client, directory, fetcher, notifier = main.create_services(config)

    assert isinstance(directory, StaticEmployeeDirectory)
    assert isinstance(notifier, main.ConsoleNotifier)
    assert token_manager.has_valid_token() is False


@pytest.mark.asyncio
async def test_period_change_reuses_cached_month():
    """期間を切り替えても再取得せずキャッシュから集計すること"""
    config = load_config("nonexistent.yaml")
    directory = StaticEmployeeDirectory(["E1"])
    fetcher = MagicMock()
    fetcher.fetch_month = AsyncMock(return_value=_month_for(["E1"]))
    notifier = MagicMock()

    await main.run_refresh(directory, fetcher, notifier, config)

    state = main.summarize_cached(["last3days"], config=config)
    assert state["summaries"]["last3days"]["E1"].present == 3

    state = main.summarize_cached(["today", "month"], notifier=notifier, config=config)
    assert state["summaries"]["today"]["E1"].present == 1
    assert state["summaries"]["month"]["E1"].present == 31

    fetcher.fetch_month.assert_awaited_once()


def test_summarize_cached_before_first_fetch(monkeypatch):
    """未取得の状態では失敗として通知すること"""
    monkeypatch.setattr(
        main, "_state_store", {"month": {}, "fetched_at": None, "employee_ids": []}
    )
    notifier = MagicMock()

    state = main.summarize_cached(["today"], notifier=notifier)

    assert state["error_message"]
    notifier.send_error.assert_called_once()
    notifier.send.assert_not_called()
