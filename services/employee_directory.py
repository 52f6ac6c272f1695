from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

from services.people_client import PeopleApiClient

INACTIVE_STATUSES = ("terminated", "inactive", "resigned", "abscond")


@dataclass
class Employee:
    record_id: str
    employee_id: str
    full_name: str
    email: str = ""
    department: str = ""
    designation: str = ""
    status: str = "Active"


def parse_employee_records(data: Any) -> list[Employee]:
    """getRelatedRecords のレスポンスを Employee のリストに変換する

    result は [{<レコードID>: [{...従業員データ...}]}, ...] の形式。
    退職・無効などの従業員は除外する。
    """
    if not isinstance(data, dict):
        return []
    result = (data.get("response") or {}).get("result")
    if not isinstance(result, list):
        return []

    employees = []
    for item in result:
        if not isinstance(item, dict) or not item:
            continue
        record_id = next(iter(item))
        values = item[record_id]
        if not isinstance(values, list) or not values or not isinstance(values[0], dict):
            continue
        record = values[0]

        status = record.get("Employeestatus") or ""
        if status.lower() in INACTIVE_STATUSES:
            continue

        first_name = record.get("FirstName") or ""
        last_name = record.get("LastName") or ""
        employees.append(
            Employee(
                record_id=str(record_id),
                employee_id=record.get("EmployeeID") or "",
                full_name=f"{first_name} {last_name}".strip(),
                email=record.get("EmailID") or "",
                department=record.get("Department") or "",
                designation=record.get("Designation") or "",
                status=status or "Active",
            )
        )
    return employees


class EmployeeDirectoryInterface(ABC):
    """従業員一覧の取得元の抽象インターフェース"""

    @abstractmethod
    async def list_employees(self) -> list[Employee]:
        ...

    async def list_employee_ids(self) -> list[str]:
        employees = await self.list_employees()
        return [e.employee_id for e in employees if e.employee_id]


class StaticEmployeeDirectory(EmployeeDirectoryInterface):
    """設定ファイルで指定した従業員IDをそのまま使う"""

    def __init__(self, employee_ids: list[str]):
        self._employee_ids = list(employee_ids)

    async def list_employees(self) -> list[Employee]:
        return [
            Employee(record_id=emp_id, employee_id=emp_id, full_name=emp_id)
            for emp_id in self._employee_ids
        ]


class ZohoEmployeeDirectory(EmployeeDirectoryInterface):
    """部署単位で Zoho People から従業員を取得する（結果はメモリにキャッシュ）"""

    def __init__(self, client: PeopleApiClient, department_id: str, limit: int = 200):
        self._client = client
        self._department_id = department_id
        self._limit = limit
        self._cache: Optional[list[Employee]] = None

    async def list_employees(self) -> list[Employee]:
        if self._cache is not None:
            return self._cache
        data = await self._client.get_department_employees(
            self._department_id, limit=self._limit
        )
        self._cache = parse_employee_records(data)
        return self._cache

    def clear_cache(self):
        self._cache = None
