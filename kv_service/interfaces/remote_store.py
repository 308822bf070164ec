"""リモートストア呼び出し規約の抽象インターフェース（境界②）。

リモートストアは名前付きプロシージャの集合としてのみ見える。
各呼び出しは位置引数のリストを受け取り、型の緩い行のリストを返す。
"""

from abc import ABC, abstractmethod
from typing import Any

# Tarantool のエラーコード（box.error）
ER_TUPLE_FOUND = 3
ER_NO_SUCH_PROC = 33


class RemoteCallError(Exception):
    """リモート呼び出しの失敗。

    code はリモートが返した構造化エラーコード。
    通信断などコードを持たない失敗では None。
    """

    def __init__(self, message: str, code: int | None = None) -> None:
        self.code = code
        self.message = message
        super().__init__(message)


class RemoteStoreInterface(ABC):
    """リモートストアへの接続。

    プロセス全体で1つだけ生成し、全リクエストで共有する。
    同時呼び出しの多重化はトランスポート側の責務。
    """

    @abstractmethod
    def call(self, procedure: str, args: list[Any]) -> list[Any]:
        """プロシージャを呼び出し、結果の行リストを返す。

        Raises:
            RemoteCallError: リモートまたは通信路でのエラー
        """
        ...

    @abstractmethod
    def close(self) -> None:
        """接続を閉じる。"""
        ...
