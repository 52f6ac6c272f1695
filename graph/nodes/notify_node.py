from graph.state import DashboardState
from services.attendance_summary import format_digest


def notify_node(state: DashboardState, notifier=None) -> dict:
    """集計結果（または読み込み失敗）を通知するノード"""
    if state["error_message"]:
        notifier.send_error(state["error_message"])
        return {}

    for period in state["periods"]:
        summaries = state["summaries"].get(period)
        if summaries is None:
            continue
        notifier.send(format_digest(period, summaries))

    return {}
