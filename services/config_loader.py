import os
from datetime import time
from pathlib import Path

import yaml

from services.token_manager import OAuthCredentials

ZOHO_TOKEN_URL = "https://accounts.zoho.com/oauth/v2/token"
ZOHO_PEOPLE_API_URL = "https://people.zoho.com/people/api"

DEFAULT_CONFIG = {
    "zoho": {
        "is_development": False,
        "department_id": "",
        "development": {
            "token_url": ZOHO_TOKEN_URL,
            "api_base_url": ZOHO_PEOPLE_API_URL,
            "path_as_query": False,
        },
        "production": {
            "token_url": ZOHO_TOKEN_URL,
            "api_base_url": ZOHO_PEOPLE_API_URL,
            "path_as_query": False,
        },
    },
    "http": {
        "timeout_seconds": 15,
        "retry_count": 2,
    },
    "auth": {
        "max_retries": 3,
        "base_delay_seconds": 1.0,
        "safety_margin_seconds": 10,
        "auto_refresh": True,
    },
    "attendance": {
        "month_days": 30,
        "check_in_cutoff": "10:30",
        "late_after": "10:30",
        "weekend_days": [5, 6],
    },
    "dashboard": {
        "periods": ["today", "last7days", "month"],
        "employee_ids": [],
    },
    "scheduler": {
        "refresh_interval_minutes": 15,
    },
    "slack": {
        "enabled": True,
        "notify_channel": "",
    },
}


class ConfigError(Exception):
    """必須設定の不足"""


def _deep_merge(base: dict, override: dict) -> dict:
    """ベース設定にオーバーライドをマージする"""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_config(path: str = "config.yaml") -> dict:
    """YAML設定ファイルをロードし、デフォルト設定とマージして返す"""
    config_path = Path(path)
    if config_path.exists():
        with open(config_path, "r", encoding="utf-8") as f:
            user_config = yaml.safe_load(f) or {}
        return _deep_merge(DEFAULT_CONFIG, user_config)
    return _deep_merge(DEFAULT_CONFIG, {})


def _env_flag(name: str):
    value = os.getenv(name)
    if value is None or value == "":
        return None
    return value.strip().lower() in ("1", "true", "yes", "on")


def resolve_endpoints(config: dict) -> dict:
    """開発/本番どちらのエンドポイント設定を使うかを決める

    環境変数 ZOHO_IS_DEVELOPMENT があれば設定ファイルより優先する。
    """
    zoho = config["zoho"]
    is_development = _env_flag("ZOHO_IS_DEVELOPMENT")
    if is_development is None:
        is_development = bool(zoho["is_development"])
    return zoho["development"] if is_development else zoho["production"]


def load_credentials(config: dict) -> OAuthCredentials:
    """OAuth認証情報を環境変数から読み込む（設定ファイル・コードには置かない）"""
    names = ("ZOHO_CLIENT_ID", "ZOHO_CLIENT_SECRET", "ZOHO_REFRESH_TOKEN")
    missing = [name for name in names if not os.getenv(name)]
    if missing:
        raise ConfigError(f"環境変数が設定されていません: {', '.join(missing)}")

    return OAuthCredentials(
        client_id=os.environ["ZOHO_CLIENT_ID"],
        client_secret=os.environ["ZOHO_CLIENT_SECRET"],
        refresh_token=os.environ["ZOHO_REFRESH_TOKEN"],
        token_url=resolve_endpoints(config)["token_url"],
    )


def parse_time(time_str: str) -> time:
    """HH:MM形式の文字列をtimeオブジェクトに変換"""
    h, m = map(int, time_str.split(":"))
    return time(h, m)
