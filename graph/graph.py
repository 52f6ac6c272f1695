# graph/graph.py
from langgraph.graph import StateGraph, END
from graph.state import DashboardState


def route_after_directory(state: DashboardState) -> str:
    if state["error_message"]:
        return "notify"
    return "fetch_month"


def route_after_fetch(state: DashboardState) -> str:
    if state["error_message"]:
        return "notify"
    return "period_filter"


def build_graph(
    directory=None,
    fetcher=None,
    notifier=None,
    config=None,
):
    """勤怠ダッシュボード更新のLangGraphを構築して返す

    各ノード関数はサービス依存を持つため、functools.partialでラップして
    LangGraphが期待する (state) -> dict シグネチャに合わせる。
    取得系ノードは非同期のため、実行には ainvoke を使う。
    """
    from functools import partial
    from graph.nodes.directory_node import directory_node
    from graph.nodes.fetch_month_node import fetch_month_node
    from graph.nodes.period_filter_node import period_filter_node
    from graph.nodes.summary_node import summary_node
    from graph.nodes.notify_node import notify_node

    directory_wrapped = partial(directory_node, directory=directory)
    fetch_month_wrapped = partial(fetch_month_node, fetcher=fetcher, config=config)
    period_filter_wrapped = partial(period_filter_node, config=config)
    summary_wrapped = partial(summary_node, config=config)
    notify_wrapped = partial(notify_node, notifier=notifier)

    workflow = StateGraph(DashboardState)

    workflow.add_node("directory", directory_wrapped)
    workflow.add_node("fetch_month", fetch_month_wrapped)
    workflow.add_node("period_filter", period_filter_wrapped)
    workflow.add_node("summary", summary_wrapped)
    workflow.add_node("notify", notify_wrapped)

    workflow.set_entry_point("directory")

    workflow.add_conditional_edges(
        "directory",
        route_after_directory,
        {"fetch_month": "fetch_month", "notify": "notify"},
    )
    workflow.add_conditional_edges(
        "fetch_month",
        route_after_fetch,
        {"period_filter": "period_filter", "notify": "notify"},
    )

    workflow.add_edge("period_filter", "summary")
    workflow.add_edge("summary", "notify")
    workflow.add_edge("notify", END)

    return workflow.compile()
