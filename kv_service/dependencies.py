"""DI用ファクトリ関数。

kv_service/ 直下に配置することで、api/ から store/ への
直接依存を避けつつ、FastAPI の Depends() で注入できる。
"""

from kv_service.gateway.manager import KeyValueManager
from kv_service.interfaces.kv_store import KeyValueStoreInterface
from kv_service.interfaces.remote_store import RemoteStoreInterface
from kv_service.settings import Settings, get_settings

_remote_store: RemoteStoreInterface | None = None
_kv_store: KeyValueStoreInterface | None = None


def get_remote_store(settings: Settings | None = None) -> RemoteStoreInterface:
    """リモートストアのシングルトンインスタンスを返す。

    初回呼び出しで接続を確立する。接続失敗は StoreUnavailableError。
    """
    global _remote_store
    if _remote_store is None:
        if settings is None:
            settings = get_settings()
        if settings.store_backend == "memory":
            from kv_service.store.memory import InMemoryRemoteStore

            _remote_store = InMemoryRemoteStore()
        else:
            from kv_service.store.tarantool import connect_tarantool

            _remote_store = connect_tarantool(settings)
    return _remote_store


def get_kv_store() -> KeyValueStoreInterface:
    """ストアゲートウェイのシングルトンインスタンスを返す。"""
    global _kv_store
    if _kv_store is None:
        _kv_store = KeyValueManager(get_remote_store())
    return _kv_store


def close_all() -> None:
    """リモートストアの接続を閉じ、シングルトンを破棄する。"""
    global _remote_store, _kv_store
    if _remote_store is not None:
        _remote_store.close()
    _reset_all()


def _reset_all() -> None:
    """全シングルトンをリセットする（テスト用）。"""
    global _remote_store, _kv_store
    _remote_store = None
    _kv_store = None
