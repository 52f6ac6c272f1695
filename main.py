"""勤怠ダッシュボードエージェント - エントリーポイント"""
import os
import asyncio
import signal
import sys
from datetime import date

from dotenv import load_dotenv

from services.config_loader import (
    ConfigError,
    load_config,
    load_credentials,
    parse_time,
    resolve_endpoints,
)
from services.token_manager import TokenManager
from services.people_client import PeopleApiClient
from services.employee_directory import StaticEmployeeDirectory, ZohoEmployeeDirectory
from services.attendance_fetcher import AttendanceFetcher
from services.slack_client import SlackNotifier, ConsoleNotifier
from graph.nodes.directory_node import directory_node
from graph.nodes.fetch_month_node import fetch_month_node
from graph.nodes.period_filter_node import period_filter_node
from graph.nodes.summary_node import summary_node
from graph.nodes.notify_node import notify_node
from schedulers.scheduler import AttendanceScheduler


# 取得済み月次データのキャッシュ（更新のたびに丸ごと置き換える）
_state_store = {
    "month": {},
    "fetched_at": None,
    "employee_ids": [],
}


def create_services(config: dict):
    """設定に基づいてサービスインスタンスを生成"""
    load_dotenv()

    endpoints = resolve_endpoints(config)
    credentials = load_credentials(config)
    http_config = config["http"]
    auth_config = config["auth"]
    attendance_config = config["attendance"]

    token_manager = TokenManager(
        credentials,
        timeout=http_config["timeout_seconds"],
        max_retries=auth_config["max_retries"],
        base_delay=auth_config["base_delay_seconds"],
        safety_margin=auth_config["safety_margin_seconds"],
        auto_refresh=auth_config["auto_refresh"],
    )
    client = PeopleApiClient(
        endpoints["api_base_url"],
        token_manager,
        timeout=http_config["timeout_seconds"],
        retry_count=http_config["retry_count"],
        path_as_query=endpoints["path_as_query"],
    )

    # 従業員一覧: 設定でID指定があればそれを使い、なければ部署から取得
    employee_ids = config["dashboard"]["employee_ids"]
    department_id = os.getenv("ZOHO_DEPARTMENT_ID", config["zoho"]["department_id"])
    if employee_ids:
        directory = StaticEmployeeDirectory(employee_ids)
    elif department_id:
        directory = ZohoEmployeeDirectory(client, department_id)
    else:
        raise ConfigError("dashboard.employee_ids か zoho.department_id を設定してください")

    fetcher = AttendanceFetcher(
        client,
        token_manager,
        cutoff=parse_time(attendance_config["check_in_cutoff"]),
        weekend_days=tuple(attendance_config["weekend_days"]),
    )

    # Slack通知
    slack_config = config["slack"]
    slack_token = os.getenv("SLACK_BOT_TOKEN", "")
    slack_channel = os.getenv("SLACK_NOTIFY_CHANNEL", slack_config.get("notify_channel", ""))
    if slack_config["enabled"] and slack_token:
        notifier = SlackNotifier(token=slack_token, channel=slack_channel)
    else:
        notifier = ConsoleNotifier()

    return token_manager, client, directory, fetcher, notifier


def _initial_state(periods: list[str], today: date) -> dict:
    return {
        "today": today.isoformat(),
        "periods": list(periods),
        "employee_ids": [],
        "month": {},
        "fetched_at": None,
        "filtered": {},
        "summaries": {},
        "error_message": None,
        "extra": {},
    }


async def run_refresh(directory, fetcher, notifier, config):
    """1回分の更新（従業員取得 → 月次取得 → 期間絞り込み → 集計 → 通知）"""
    state = _initial_state(config["dashboard"]["periods"], date.today())

    # 1. Directory
    state.update(await directory_node(state, directory=directory))
    if state["error_message"]:
        notify_node(state, notifier=notifier)
        return state

    # 2. FetchMonth
    state.update(await fetch_month_node(state, fetcher=fetcher, config=config))
    if state["error_message"]:
        notify_node(state, notifier=notifier)
        return state

    _state_store["month"] = state["month"]
    _state_store["fetched_at"] = state["fetched_at"]
    _state_store["employee_ids"] = state["employee_ids"]

    # 3-5. キャッシュから期間絞り込み → 集計 → 通知
    return summarize_cached(state["periods"], notifier, config)


def summarize_cached(periods: list[str], notifier=None, config: dict = None, today: date = None):
    """キャッシュ済みの月次データを指定期間で絞り込み・集計する（再取得はしない）

    期間を切り替えるたびに呼び出せる。notifier を渡した場合は結果を通知する。
    """
    if today is None:
        today = date.today()
    state = _initial_state(periods, today)
    state["employee_ids"] = _state_store["employee_ids"]
    state["month"] = _state_store["month"]
    state["fetched_at"] = _state_store["fetched_at"]

    if state["fetched_at"] is None:
        state["error_message"] = "勤怠データがまだ取得されていません"
    else:
        state.update(period_filter_node(state, config=config))
        state.update(summary_node(state, config=config))

    if notifier is not None:
        notify_node(state, notifier=notifier)
    return state


async def serve(config: dict):
    """スケジューラを起動し、停止シグナルまで待機する"""
    token_manager, client, directory, fetcher, notifier = create_services(config)

    async def refresh_job():
        try:
            await run_refresh(directory, fetcher, notifier, config)
        except Exception as e:
            print(f"[勤怠ダッシュボード] 更新中にエラー: {e}", file=sys.stderr)
            notifier.send_error(str(e))

    interval = config["scheduler"]["refresh_interval_minutes"]
    scheduler = AttendanceScheduler(interval_minutes=interval, job_func=refresh_job)
    scheduler.start()
    print(f"[勤怠ダッシュボード] {interval}分間隔で勤怠データを更新します")

    # シグナルハンドリング
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    print("[勤怠ダッシュボード] Ctrl+Cで停止します")
    await stop_event.wait()

    print("\n[勤怠ダッシュボード] 停止中...")
    scheduler.stop()
    await token_manager.close()
    client.close()
    print("[勤怠ダッシュボード] 停止しました")


def main():
    """メイン起動処理"""
    config = load_config(os.getenv("ATTENDANCE_CONFIG", "config.yaml"))
    try:
        asyncio.run(serve(config))
    except ConfigError as e:
        print(f"[勤怠ダッシュボード] 設定エラー: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
