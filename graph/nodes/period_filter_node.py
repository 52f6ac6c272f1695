# graph/nodes/period_filter_node.py
from datetime import date

from graph.state import DashboardState
from services.period_filter import filter_by_period


def period_filter_node(state: DashboardState, config: dict = None) -> dict:
    """取得済みの月次データを期間ごとに絞り込むノード（再取得はしない）"""
    if config is None:
        config = {"attendance": {"month_days": 30, "weekend_days": [5, 6]}}

    attendance = config["attendance"]
    today = date.fromisoformat(state["today"])
    filtered = {
        period: filter_by_period(
            state["month"],
            period,
            today=today,
            month_days=attendance["month_days"],
            weekend_days=tuple(attendance["weekend_days"]),
        )
        for period in state["periods"]
    }
    return {"filtered": filtered}
