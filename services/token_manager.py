import asyncio
import sys
import time
from dataclasses import dataclass, replace
from typing import Callable, Optional

import requests

SAFETY_MARGIN_SECONDS = 10
RATE_LIMIT_ERROR = "Access Denied"
RATE_LIMIT_DESCRIPTION = "too many requests"


class AuthError(Exception):
    """トークン取得に関するエラーの基底クラス"""


class AuthRateLimitedError(AuthError):
    """トークンエンドポイントのレート制限（リトライ上限まで回復できなかった）"""


class AuthTransientError(AuthError):
    """タイムアウト・接続エラーなど一時的な失敗"""


class AuthFailureError(AuthError):
    """認証情報不正などの致命的な失敗"""


@dataclass(frozen=True)
class OAuthCredentials:
    client_id: str
    client_secret: str
    refresh_token: str
    token_url: str


@dataclass
class TokenState:
    access_token: Optional[str] = None
    expires_at: Optional[float] = None      # epoch秒（安全マージン控除済み）
    rate_limited: bool = False
    last_refresh: Optional[float] = None


def _is_rate_limit_body(body) -> bool:
    return (
        isinstance(body, dict)
        and body.get("error") == RATE_LIMIT_ERROR
        and RATE_LIMIT_DESCRIPTION in str(body.get("error_description", "")).lower()
    )


class TokenManager:
    """OAuthアクセストークンを1つだけ保持し、期限前に自動更新する

    - 同時に複数の呼び出し元が更新を要求しても、トークンエンドポイントへの
      リクエストは1回にまとめる（シングルフライト）
    - レート制限時は保持中のトークンがあればそれを返し、なければ
      指数バックオフでリトライする
    - 更新成功時に有効期限のタイミングで次回更新を予約する
    """

    def __init__(
        self,
        credentials: OAuthCredentials,
        session: Optional[requests.Session] = None,
        timeout: float = 15,
        max_retries: int = 3,
        base_delay: float = 1.0,
        safety_margin: float = SAFETY_MARGIN_SECONDS,
        auto_refresh: bool = True,
        clock: Callable[[], float] = time.time,
        sleep: Callable = asyncio.sleep,
    ):
        self._credentials = credentials
        self._owns_session = session is None
        self._session = session or requests.Session()
        self._timeout = timeout
        self._max_retries = max_retries
        self._base_delay = base_delay
        self._safety_margin = safety_margin
        self._auto_refresh = auto_refresh
        self._clock = clock
        self._sleep = sleep
        self._state = TokenState()
        self._inflight: Optional[asyncio.Task] = None
        self._timer: Optional[asyncio.Task] = None

    @property
    def state(self) -> TokenState:
        """現在のトークン状態のスナップショット"""
        return replace(self._state)

    def has_valid_token(self) -> bool:
        state = self._state
        return (
            state.access_token is not None
            and state.expires_at is not None
            and self._clock() < state.expires_at
        )

    async def get_access_token(self) -> str:
        """有効なアクセストークンを返す（期限切れなら更新を待つ）"""
        if self.has_valid_token():
            return self._state.access_token

        try:
            return await self.refresh_access_token()
        except (AuthFailureError, AuthTransientError) as e:
            # 安全マージン内ならまだ使える見込みが高い
            state = self._state
            if (
                state.access_token is not None
                and state.expires_at is not None
                and self._clock() < state.expires_at + self._safety_margin
            ):
                print(
                    f"[TokenManager] 更新に失敗したため既存トークンを使用します: {e}",
                    file=sys.stderr,
                )
                return state.access_token
            raise

    async def get_auth_header(self) -> dict:
        token = await self.get_access_token()
        return {"Authorization": f"Bearer {token}"}

    async def refresh_access_token(self) -> str:
        """トークンを更新する。実行中の更新があればその結果を共有する"""
        if self._inflight is None:
            self._inflight = asyncio.ensure_future(self._refresh_with_backoff())
            self._inflight.add_done_callback(self._clear_inflight)
        return await asyncio.shield(self._inflight)

    force_refresh = refresh_access_token

    def _clear_inflight(self, task: asyncio.Task):
        if self._inflight is task:
            self._inflight = None

    async def _refresh_with_backoff(self) -> str:
        for attempt in range(self._max_retries + 1):
            try:
                body = await asyncio.to_thread(self._request_token)
            except AuthRateLimitedError:
                self._state.rate_limited = True
                if self._state.access_token:
                    print("[TokenManager] レート制限中のため既存トークンを使用します")
                    if self._auto_refresh:
                        # 制限が解けた頃に改めて更新する
                        self._schedule_refresh(self._base_delay * (2 ** self._max_retries))
                    return self._state.access_token
                if attempt >= self._max_retries:
                    raise
                delay = self._base_delay * (2 ** attempt)
                print(f"[TokenManager] レート制限: {delay:.1f}秒後にリトライします")
                await self._sleep(delay)
                continue
            except AuthTransientError as e:
                if attempt >= self._max_retries:
                    raise
                delay = self._base_delay * (2 ** attempt)
                print(f"[TokenManager] 一時的なエラー({e}): {delay:.1f}秒後にリトライします")
                await self._sleep(delay)
                continue

            return self._store_token(body)

        raise AuthFailureError("トークンを取得できませんでした")

    def _request_token(self) -> dict:
        """トークンエンドポイントへPOSTする（ワーカースレッドで実行される）"""
        form = {
            "client_id": self._credentials.client_id,
            "client_secret": self._credentials.client_secret,
            "refresh_token": self._credentials.refresh_token,
            "grant_type": "refresh_token",
        }
        try:
            response = self._session.post(
                self._credentials.token_url,
                data=form,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                timeout=self._timeout,
            )
        except (requests.Timeout, requests.ConnectionError) as e:
            raise AuthTransientError(str(e)) from e
        except requests.RequestException as e:
            raise AuthFailureError(str(e)) from e

        try:
            body = response.json()
        except ValueError:
            body = None

        if response.status_code == 429 or _is_rate_limit_body(body):
            raise AuthRateLimitedError("トークンエンドポイントのレート制限に達しました")
        if response.status_code >= 400:
            raise AuthFailureError(f"トークン更新に失敗しました (HTTP {response.status_code}): {body}")
        if not isinstance(body, dict):
            raise AuthFailureError("トークンレスポンスがJSONではありません")
        if "error" in body:
            raise AuthFailureError(
                f"トークン更新に失敗しました: {body['error']} {body.get('error_description', '')}".strip()
            )
        if not body.get("access_token"):
            raise AuthFailureError("トークンレスポンスに access_token がありません")
        return body

    def _store_token(self, body: dict) -> str:
        now = self._clock()
        expires_in = float(body.get("expires_in", 3600))
        self._state = TokenState(
            access_token=body["access_token"],
            expires_at=now + expires_in - self._safety_margin,
            rate_limited=False,
            last_refresh=now,
        )
        if self._auto_refresh:
            self._schedule_refresh()
        return self._state.access_token

    def _schedule_refresh(self, delay: Optional[float] = None):
        """次回更新を予約する（delay 省略時は有効期限のタイミング）"""
        if self._timer is not None:
            self._timer.cancel()
        if delay is None:
            delay = max(0.0, self._state.expires_at - self._clock())
        self._timer = asyncio.ensure_future(self._refresh_later(delay))

    async def _refresh_later(self, delay: float):
        await asyncio.sleep(delay)
        self._timer = None
        try:
            await self.refresh_access_token()
        except AuthError as e:
            # 待っている呼び出し元がいないので記録のみ
            print(f"[TokenManager] バックグラウンド更新に失敗しました: {e}", file=sys.stderr)

    async def close(self):
        """予約中のバックグラウンド更新を停止し、HTTPセッションを閉じる"""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._owns_session:
            self._session.close()
