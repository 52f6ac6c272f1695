from graph.state import DashboardState
from services.attendance_summary import summarize_month
from services.config_loader import parse_time


def summary_node(state: DashboardState, config: dict = None) -> dict:
    """期間ごとに従業員別の集計を作るノード"""
    late_after = "10:30"
    if config is not None:
        late_after = config["attendance"]["late_after"]

    threshold = parse_time(late_after)
    summaries = {
        period: summarize_month(month, late_after=threshold)
        for period, month in state["filtered"].items()
    }
    return {"summaries": summaries}
