# graph/nodes/fetch_month_node.py
from datetime import datetime

from graph.state import DashboardState
from services.attendance_fetcher import AttendanceFetcher
from services.token_manager import AuthError


def _now() -> datetime:
    """テスト時にモック可能な現在時刻取得"""
    return datetime.now()


async def fetch_month_node(
    state: DashboardState,
    fetcher: AttendanceFetcher = None,
    config: dict = None,
) -> dict:
    """月次の勤怠データをまとめて取得するノード（キャッシュは丸ごと置き換え）"""
    if config is None:
        config = {"attendance": {"month_days": 30}}

    days = config["attendance"]["month_days"]
    try:
        month = await fetcher.fetch_month(state["employee_ids"], days=days)
    except AuthError as e:
        return {"error_message": f"認証に失敗しました: {e}"}

    return {
        "month": month,
        "fetched_at": _now().isoformat(timespec="seconds"),
        "error_message": None,
    }
