"""リモートストアの Tarantool 実装。

RemoteStoreInterface に準拠し、tarantool クライアントの接続を1つ保持する。
"""

from typing import Any

import tarantool

from kv_service.interfaces.errors import StoreUnavailableError
from kv_service.interfaces.remote_store import RemoteCallError, RemoteStoreInterface
from kv_service.log import get_logger
from kv_service.settings import Settings

logger = get_logger(__name__)

GUEST_USER = "guest"


def _to_remote_error(exc: tarantool.Error) -> RemoteCallError:
    """クライアントの例外を RemoteCallError に変換する。

    NetworkError の code は OS の errno なので捨てる。
    """
    code = None
    if not isinstance(exc, tarantool.NetworkError):
        code = getattr(exc, "code", None) or None
    message = getattr(exc, "message", None) or str(exc)
    return RemoteCallError(message, code=code)


class TarantoolRemoteStore(RemoteStoreInterface):
    """Tarantool のストアドプロシージャを呼び出すリモートストア。

    接続は生成時に1度だけ確立する。通信エラーが起きたら接続を閉じ、
    以後の呼び出しは全て失敗させる（再接続しない）。
    """

    def __init__(self, host: str, port: int, user: str = GUEST_USER):
        """初期化。

        Args:
            host: Tarantool のホスト名
            port: Tarantool のポート番号
            user: 接続ユーザー

        Raises:
            RemoteCallError: 接続を確立できない
        """
        self._address = f"{host}:{port}"
        self._dead = False
        try:
            self._conn = tarantool.Connection(
                host, port, user=user, reconnect_max_attempts=0
            )
        except tarantool.Error as exc:
            raise _to_remote_error(exc) from exc
        # クライアントは要求前に切れたソケットを張り直すので、それを塞ぐ
        self._conn.connect_basic = self._refuse_reconnect

    @property
    def address(self) -> str:
        return self._address

    @property
    def is_dead(self) -> bool:
        return self._dead

    def _refuse_reconnect(self) -> None:
        raise tarantool.NetworkError("connection closed")

    def _mark_dead(self) -> None:
        self._dead = True
        try:
            self._conn.close()
        except (tarantool.Error, OSError) as exc:
            logger.warning("tarantool_close_failed", addr=self._address, error=str(exc))

    def call(self, procedure: str, args: list[Any]) -> list[Any]:
        if self._dead:
            raise RemoteCallError("connection closed")
        try:
            response = self._conn.call(procedure, *args)
        except tarantool.NetworkError as exc:
            logger.error(
                "tarantool_connection_lost", addr=self._address, procedure=procedure
            )
            self._mark_dead()
            raise _to_remote_error(exc) from exc
        except tarantool.Error as exc:
            raise _to_remote_error(exc) from exc
        return list(response.data)

    def close(self) -> None:
        if not self._dead:
            self._dead = True
            self._conn.close()


def connect_tarantool(settings: Settings) -> TarantoolRemoteStore:
    """設定に従って Tarantool へ接続する。

    Raises:
        StoreUnavailableError: 接続を確立できない（起動を中止すべき）
    """
    try:
        store = TarantoolRemoteStore(settings.tarantool_host, settings.tarantool_port)
    except RemoteCallError as exc:
        logger.error(
            "tarantool_connect_failed",
            host=settings.tarantool_host,
            port=settings.tarantool_port,
            error=exc.message,
        )
        raise StoreUnavailableError(
            "", f"failed to connect to Tarantool: {exc.message}"
        ) from exc

    logger.info("tarantool_connected", addr=store.address)
    return store
