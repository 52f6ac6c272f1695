import sys


class ConsoleNotifier:
    """コンソール出力による通知（フォールバック用）"""

    def send(self, message: str) -> bool:
        print(f"[勤怠ダッシュボード] {message}", file=sys.stdout)
        return True

    def send_error(self, error: str) -> bool:
        print(f"[勤怠ダッシュボード:エラー] {error}", file=sys.stderr)
        return True


class SlackNotifier:
    """勤怠サマリーとエラーをSlackに投稿する"""

    def __init__(self, token: str, channel: str):
        self._channel = channel
        self._client = None
        self._fallback = ConsoleNotifier()

        if token:
            from slack_sdk import WebClient
            self._client = WebClient(token=token)

    def send(self, message: str) -> bool:
        """メッセージ送信（クライアント未設定時はコンソールへ）"""
        if self._client is None:
            return self._fallback.send(message)

        from slack_sdk.errors import SlackApiError

        try:
            self._client.chat_postMessage(channel=self._channel, text=message)
            return True
        except SlackApiError as e:
            print(f"[SlackNotifier] 投稿に失敗しました: {e}", file=sys.stderr)
            return False

    def send_error(self, error: str) -> bool:
        """読み込み失敗の通知"""
        message = f"❌ 勤怠データの読み込みに失敗しました。再試行してください（エラー: {error}）"
        return self.send(message)
