"""環境変数からの設定読み込み。"""

import os
from dataclasses import dataclass

STORE_BACKENDS = ("tarantool", "memory")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_port(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        port = int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc
    if not 0 < port < 65536:
        raise ValueError(f"{name} out of range: {port}")
    return port


@dataclass(frozen=True)
class Settings:
    """プロセス設定。起動時に1度だけ読み込む。"""

    # リモートストア
    tarantool_host: str
    tarantool_port: int
    store_backend: str

    # HTTP サーバー
    http_host: str
    http_port: int

    # ログ
    log_level: str
    json_logs: bool


def get_settings() -> Settings:
    """環境変数から Settings を組み立てる。未設定の項目は既定値を使う。

    Raises:
        ValueError: ポート番号やバックエンド名が不正
    """
    store_backend = os.getenv("KV_STORE_BACKEND", "tarantool").strip().lower()
    if store_backend not in STORE_BACKENDS:
        raise ValueError(
            f"KV_STORE_BACKEND must be one of {STORE_BACKENDS}, got {store_backend!r}"
        )

    return Settings(
        tarantool_host=os.getenv("TARANTOOL_HOST") or "tarantool",
        tarantool_port=_env_port("TARANTOOL_PORT", 3301),
        store_backend=store_backend,
        http_host=os.getenv("HTTP_HOST") or "0.0.0.0",
        http_port=_env_port("HTTP_PORT", 8080),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        json_logs=_env_bool("JSON_LOGS", True),
    )
