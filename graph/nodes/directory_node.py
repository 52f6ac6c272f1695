# graph/nodes/directory_node.py
from graph.state import DashboardState
from services.employee_directory import EmployeeDirectoryInterface
from services.people_client import PeopleApiError
from services.token_manager import AuthError


async def directory_node(
    state: DashboardState,
    directory: EmployeeDirectoryInterface = None,
) -> dict:
    """勤怠取得対象の従業員IDを取得するノード"""
    try:
        employee_ids = await directory.list_employee_ids()
    except (AuthError, PeopleApiError) as e:
        return {"error_message": f"従業員一覧の取得に失敗しました: {e}"}

    if not employee_ids:
        return {"employee_ids": [], "error_message": "対象の従業員がいません"}
    return {"employee_ids": employee_ids, "error_message": None}
