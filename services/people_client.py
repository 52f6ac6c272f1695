import asyncio
import sys
from typing import Any, Callable, Optional

import requests

from services.token_manager import TokenManager

ATTENDANCE_REPORT_PATH = "attendance/getUserReport"
DEPARTMENT_EMPLOYEES_PATH = "forms/employee/getRelatedRecords"


class PeopleApiError(Exception):
    """People API 呼び出しの失敗"""


class PeopleApiTimeoutError(PeopleApiError):
    """タイムアウト・接続エラー（リトライ対象）"""


class PeopleApiClient:
    """Zoho People API へ認証付きでアクセスするクライアント

    path_as_query=True の場合はサーバーレスプロキシ形式
    （ベースURLに ?path=<endpoint> を付ける）でリクエストする。
    """

    def __init__(
        self,
        base_url: str,
        token_manager: TokenManager,
        session: Optional[requests.Session] = None,
        timeout: float = 15,
        retry_count: int = 2,
        base_delay: float = 1.0,
        path_as_query: bool = False,
        sleep: Callable = asyncio.sleep,
    ):
        self._base_url = base_url.rstrip("/")
        self._token_manager = token_manager
        self._owns_session = session is None
        self._session = session or requests.Session()
        self._timeout = timeout
        self._retry_count = retry_count
        self._base_delay = base_delay
        self._path_as_query = path_as_query
        self._sleep = sleep

    def build_request(self, path: str, params: dict) -> tuple[str, dict]:
        """エンドポイントとクエリからURLとパラメータを組み立てる"""
        path = path.strip("/")
        if self._path_as_query:
            return self._base_url, {"path": path, **params}
        return f"{self._base_url}/{path}", dict(params)

    async def get_user_report(self, employee_id: str, sdate: str, edate: str) -> Any:
        """従業員1人分の勤怠レポート（生データ）を取得する"""
        return await self.get(
            ATTENDANCE_REPORT_PATH,
            {"sdate": sdate, "edate": edate, "empId": employee_id},
        )

    async def get_department_employees(
        self, department_id: str, start_index: int = 1, limit: int = 200
    ) -> Any:
        return await self.get(
            DEPARTMENT_EMPLOYEES_PATH,
            {
                "parentModule": "department",
                "id": department_id,
                "sIndex": start_index,
                "limit": limit,
            },
        )

    async def get(self, path: str, params: dict) -> Any:
        """認証ヘッダ付きGET（401時はトークンを更新して1回だけ再送）"""
        url, query = self.build_request(path, params)
        refreshed = False
        attempt = 0

        while True:
            headers = await self._token_manager.get_auth_header()
            headers.update({"Content-Type": "application/json", "Accept": "application/json"})
            try:
                response = await asyncio.to_thread(self._send, url, query, headers)
            except PeopleApiTimeoutError as e:
                if attempt >= self._retry_count:
                    raise
                delay = self._base_delay * (2 ** attempt)
                attempt += 1
                print(f"[PeopleApiClient] {path}: {e} / {delay:.1f}秒後にリトライします")
                await self._sleep(delay)
                continue

            if response.status_code == 401 and not refreshed:
                print(f"[PeopleApiClient] {path}: 401のためトークンを更新します", file=sys.stderr)
                refreshed = True
                await self._token_manager.force_refresh()
                continue

            if response.status_code >= 400:
                raise PeopleApiError(f"{path} が失敗しました (HTTP {response.status_code})")

            if not response.content:
                return None
            try:
                return response.json()
            except ValueError as e:
                raise PeopleApiError(f"{path} のレスポンスがJSONではありません") from e

    def _send(self, url: str, params: dict, headers: dict) -> requests.Response:
        try:
            return self._session.get(url, params=params, headers=headers, timeout=self._timeout)
        except (requests.Timeout, requests.ConnectionError) as e:
            raise PeopleApiTimeoutError(str(e)) from e
        except requests.RequestException as e:
            raise PeopleApiError(str(e)) from e

    def close(self):
        if self._owns_session:
            self._session.close()
