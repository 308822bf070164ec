"""リモートストアのインメモリ実装。

Tarantool 側の insert_kv / get_kv / update_kv / delete_kv と同じ
結果の形を返す。ローカル起動（KV_STORE_BACKEND=memory）とテストで使う。
"""

import threading
from collections.abc import Callable
from typing import Any

from kv_service.interfaces.remote_store import (
    ER_NO_SUCH_PROC,
    ER_TUPLE_FOUND,
    RemoteCallError,
    RemoteStoreInterface,
)


class InMemoryRemoteStore(RemoteStoreInterface):
    """dict でプロシージャを模倣するリモートストア。"""

    def __init__(self) -> None:
        self._space: dict[str, str] = {}
        self._lock = threading.Lock()
        self._procedures: dict[str, Callable[..., list[Any]]] = {
            "insert_kv": self._insert,
            "get_kv": self._get,
            "update_kv": self._update,
            "delete_kv": self._delete,
        }
        self.closed = False

    def call(self, procedure: str, args: list[Any]) -> list[Any]:
        handler = self._procedures.get(procedure)
        if handler is None:
            raise RemoteCallError(
                f"Procedure '{procedure}' is not defined", code=ER_NO_SUCH_PROC
            )
        with self._lock:
            return handler(*args)

    def close(self) -> None:
        self.closed = True

    def _insert(self, key: str, value: str) -> list[Any]:
        if key in self._space:
            raise RemoteCallError("key already exists", code=ER_TUPLE_FOUND)
        self._space[key] = value
        return [[key, value]]

    def _get(self, key: str) -> list[Any]:
        if key not in self._space:
            return []
        return [[key, self._space[key]]]

    def _update(self, key: str, value: str) -> list[Any]:
        # 欠落キーは何もせず nil を返す
        if key not in self._space:
            return [[None]]
        self._space[key] = value
        return [[key, value]]

    def _delete(self, key: str) -> list[Any]:
        value = self._space.pop(key, None)
        if value is None:
            return []
        return [[key, value]]
